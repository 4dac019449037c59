"""End-to-end tests: every event kind polled concurrently into SQLite."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy import func, select

from ledger_indexer.config import IndexerConfig
from ledger_indexer.events import EventKind
from ledger_indexer.indexer import LedgerIndexer, build_indexer
from ledger_indexer.materializer import EventMaterializer
from ledger_indexer.persistence.database import Database
from ledger_indexer.persistence.models import Content, ContentTier, IndexerCursor, Tier
from ledger_indexer.retry import RetryPolicy

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from conftest import LedgerFactory

    from ledger_indexer.adapters.memory import (
        InMemoryCheckpointStore,
        InMemoryEventSource,
    )


@pytest.fixture
async def serial_database(tmp_path: Path) -> AsyncIterator[Database]:
    # One pooled connection: SQLite allows a single writer at a time.
    db = Database(
        f"sqlite+aiosqlite:///{tmp_path / 'e2e.db'}", pool_size=1, max_overflow=0
    )
    await db.create_schema()
    yield db
    await db.dispose()


async def wait_for(predicate: Any, timeout: float = 5.0) -> None:
    async def poll() -> None:
        while not await predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout=timeout)


@pytest.mark.asyncio
async def test_child_kinds_converge_when_parents_arrive_late(
    serial_database: Database,
    source: InMemoryEventSource,
    ledger: LedgerFactory,
    checkpoints: InMemoryCheckpointStore,
) -> None:
    materializer = EventMaterializer(
        serial_database.session_factory,
        retry_policy=RetryPolicy(max_retries=5, initial_delay=0.05, max_delay=0.2),
    )
    # Children are in the log before their parents.
    ledger.content_created("c1", ["t1", "t2"])
    ledger.tier_created("t1")
    ledger.tier_created("t2")

    async def content_indexed() -> bool:
        async with serial_database.session_factory() as session:
            return (
                await session.scalar(select(func.count()).select_from(ContentTier))
            ) == 2

    async def all_checkpointed() -> bool:
        for kind in ("ContentCreated", "TierCreated", "ProfileCreated"):
            if await checkpoints.get(kind) is None:
                return False
        return True

    indexer = LedgerIndexer(
        source,
        checkpoints,
        materializer,
        kinds=[EventKind.CONTENT_CREATED, EventKind.TIER_CREATED],
        poll_interval=0.01,
    )
    async with indexer:
        await asyncio.sleep(0.03)
        ledger.profile_created()
        async with LedgerIndexer(
            source,
            checkpoints,
            materializer,
            kinds=[EventKind.PROFILE_CREATED],
            poll_interval=0.01,
        ):
            await wait_for(content_indexed)
            # Rows commit before the page's checkpoint is saved.
            await wait_for(all_checkpointed)

    for kind in ("ContentCreated", "TierCreated", "ProfileCreated"):
        assert await checkpoints.get(kind) is not None
    assert all(p.state.value == "idle" for p in indexer.pollers.values())


@pytest.mark.asyncio
async def test_build_indexer_persists_checkpoints(
    serial_database: Database,
    source: InMemoryEventSource,
    ledger: LedgerFactory,
) -> None:
    config = IndexerConfig(
        database_url="sqlite+aiosqlite://",
        package_id="0xpkg",
        poll_interval_seconds=0.01,
        page_size=1,
        retry_initial_delay_seconds=0.05,
        retry_max_delay_seconds=0.2,
    )
    ledger.profile_created()
    ledger.tier_created("t1")
    ledger.tier_created("t2")

    indexer = build_indexer(config, serial_database, source)
    assert set(indexer.pollers) == set(EventKind)

    seen = await indexer.run_once()
    assert seen[EventKind.PROFILE_CREATED] == 1
    # page_size=1 leaves the second tier for the next tick.
    seen = await indexer.run_once()
    assert seen[EventKind.TIER_CREATED] == 1

    async with serial_database.session_factory() as session:
        tiers = (await session.execute(select(Tier.tier_id))).scalars().all()
        cursors = (await session.execute(select(IndexerCursor))).scalars().all()
        contents = await session.scalar(select(func.count()).select_from(Content))
    assert sorted(tiers) == ["t1", "t2"]
    assert {c.event_type for c in cursors} == {"ProfileCreated", "TierCreated"}
    assert contents == 0
