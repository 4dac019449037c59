"""Tests for the SQLAlchemy and in-memory checkpoint stores."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select

from ledger_indexer.adapters.memory import InMemoryCheckpointStore
from ledger_indexer.events import EventPosition
from ledger_indexer.exceptions import CheckpointError
from ledger_indexer.instrumentation import HookRegistry
from ledger_indexer.persistence import IndexerCursor, SQLAlchemyCheckpointStore
from ledger_indexer.ports import ICheckpointStore


@pytest.mark.asyncio
async def test_get_unknown_kind_returns_none(session_factory: Any) -> None:
    store = SQLAlchemyCheckpointStore(session_factory)
    assert await store.get("ProfileCreated") is None


@pytest.mark.asyncio
async def test_set_then_get(session_factory: Any) -> None:
    store = SQLAlchemyCheckpointStore(session_factory)
    await store.set("TierCreated", EventPosition("tx1", "4"))
    assert await store.get("TierCreated") == EventPosition("tx1", "4")


@pytest.mark.asyncio
async def test_set_overwrites_single_row_per_kind(session_factory: Any) -> None:
    store = SQLAlchemyCheckpointStore(session_factory)
    await store.set("TierCreated", EventPosition("tx1", "4"))
    await store.set("TierCreated", EventPosition("tx2", "0"))
    await store.set("ContentCreated", EventPosition("tx3", "1"))

    assert await store.get("TierCreated") == EventPosition("tx2", "0")
    async with session_factory() as session:
        count = await session.scalar(select(func.count()).select_from(IndexerCursor))
    assert count == 2


@pytest.mark.asyncio
async def test_store_errors_are_wrapped() -> None:
    factory = MagicMock(side_effect=RuntimeError("pool exhausted"))
    store = SQLAlchemyCheckpointStore(factory)

    with pytest.raises(CheckpointError, match="TierCreated"):
        await store.get("TierCreated")
    with pytest.raises(CheckpointError, match="pool exhausted"):
        await store.set("TierCreated", EventPosition("tx", "1"))


@pytest.mark.asyncio
async def test_set_runs_checkpoint_hook(
    session_factory: Any, hook_registry: HookRegistry
) -> None:
    seen: list[tuple[str, dict[str, Any]]] = []

    async def hook(operation: str, attributes: dict[str, Any], next_handler: Any) -> Any:
        seen.append((operation, dict(attributes)))
        return await next_handler()

    hook_registry.register(hook, operations=["checkpoint.save.*"])
    store = SQLAlchemyCheckpointStore(session_factory)
    await store.set("TierDeactivated", EventPosition("tx9", "2"))

    assert seen == [
        (
            "checkpoint.save.TierDeactivated",
            {
                "event.type": "TierDeactivated",
                "checkpoint.tx_digest": "tx9",
                "checkpoint.event_seq": "2",
            },
        )
    ]


@pytest.mark.asyncio
async def test_in_memory_store_matches_protocol() -> None:
    store = InMemoryCheckpointStore()
    assert isinstance(store, ICheckpointStore)
    assert await store.get("ProfileCreated") is None
    await store.set("ProfileCreated", EventPosition("a", "1"))
    await store.set("ProfileCreated", EventPosition("b", "2"))
    assert await store.get("ProfileCreated") == EventPosition("b", "2")
