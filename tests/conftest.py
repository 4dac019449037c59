"""Shared fixtures: a file-backed SQLite read view and an in-memory ledger."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from ledger_indexer.adapters.memory import InMemoryCheckpointStore, InMemoryEventSource
from ledger_indexer.events import EventKind, LedgerEvent
from ledger_indexer.instrumentation import HookRegistry, set_hook_registry
from ledger_indexer.materializer import EventMaterializer
from ledger_indexer.persistence.database import Database
from ledger_indexer.retry import RetryPolicy

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

# Ledger timestamps, in milliseconds.
T0 = 1_700_000_000_000
DAY_MS = 86_400_000
FAR_FUTURE_MS = 4_102_444_800_000  # 2100-01-01


class SleepRecorder:
    """Stands in for asyncio.sleep; records delays and runs an optional hook."""

    def __init__(self) -> None:
        self.delays: list[float] = []
        self.on_sleep: Any = None

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.on_sleep is not None:
            await self.on_sleep(len(self.delays))


class LedgerFactory:
    """Appends well-formed events to an in-memory ledger."""

    def __init__(self, source: InMemoryEventSource) -> None:
        self.source = source

    def profile_created(
        self, creator: str = "0xalice", name: str = "alice", profile_id: str = "p-alice"
    ) -> LedgerEvent:
        return self.source.append(
            EventKind.PROFILE_CREATED,
            {
                "profile_id": profile_id,
                "creator": creator,
                "name": name,
                "timestamp": str(T0),
            },
        )

    def profile_updated(
        self,
        profile_id: str = "p-alice",
        name: str = "alice",
        bio: str = "hello",
        avatar_url: str = "",
        timestamp: int = T0 + 1000,
    ) -> LedgerEvent:
        return self.source.append(
            EventKind.PROFILE_UPDATED,
            {
                "profile_id": profile_id,
                "creator": "0xalice",
                "name": name,
                "bio": bio,
                "avatar_url": avatar_url,
                "timestamp": str(timestamp),
            },
        )

    def tier_created(
        self,
        tier_id: str,
        creator: str = "0xalice",
        name: str = "Gold",
        price: int | str = 1_000_000_000,
    ) -> LedgerEvent:
        return self.source.append(
            EventKind.TIER_CREATED,
            {
                "tier_id": tier_id,
                "creator": creator,
                "name": name,
                "description": f"{name} tier",
                "price": str(price),
                "is_active": True,
                "created_at": str(T0),
            },
        )

    def tier_price_updated(self, tier_id: str, old: int, new: int) -> LedgerEvent:
        return self.source.append(
            EventKind.TIER_PRICE_UPDATED,
            {
                "tier_id": tier_id,
                "creator": "0xalice",
                "old_price": str(old),
                "new_price": str(new),
                "timestamp": str(T0),
            },
        )

    def tier_deactivated(self, tier_id: str) -> LedgerEvent:
        return self.source.append(
            EventKind.TIER_DEACTIVATED,
            {"tier_id": tier_id, "creator": "0xalice", "timestamp": str(T0)},
        )

    def subscription_purchased(
        self,
        subscription_id: str,
        tier_id: str,
        subscriber: str = "0xbob0000000000000000",
        creator: str = "0xalice",
        expires_at: int = FAR_FUTURE_MS,
    ) -> LedgerEvent:
        return self.source.append(
            EventKind.SUBSCRIPTION_PURCHASED,
            {
                "subscription_id": subscription_id,
                "subscriber": subscriber,
                "creator": creator,
                "tier_id": tier_id,
                "tier_name": "Gold",
                "amount": "1000000000",
                "started_at": str(T0),
                "expires_at": str(expires_at),
            },
        )

    def content_created(
        self,
        content_id: str,
        tier_ids: list[str],
        creator: str = "0xalice",
        title: str = "First post",
    ) -> LedgerEvent:
        return self.source.append(
            EventKind.CONTENT_CREATED,
            {
                "content_id": content_id,
                "creator": creator,
                "title": title,
                "description": "",
                "content_type": "text/markdown",
                "walrus_blob_id": f"blob-{content_id}",
                "preview_blob_id": "",
                "tier_ids": tier_ids,
                "is_public": False,
                "created_at": str(T0 + DAY_MS),
            },
        )


@pytest.fixture(autouse=True)
def hook_registry() -> HookRegistry:
    """Isolate instrumentation hooks per test."""
    registry = HookRegistry()
    set_hook_registry(registry)
    return registry


@pytest.fixture
async def database(tmp_path: Path) -> AsyncIterator[Database]:
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'indexer.db'}")
    await db.create_schema()
    yield db
    await db.dispose()


@pytest.fixture
def session_factory(database: Database) -> Any:
    return database.session_factory


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(max_retries=5, initial_delay=1.0, max_delay=10.0)


@pytest.fixture
def materializer(
    database: Database, retry_policy: RetryPolicy, sleep: SleepRecorder
) -> EventMaterializer:
    return EventMaterializer(
        database.session_factory, retry_policy=retry_policy, sleep=sleep
    )


@pytest.fixture
def source() -> InMemoryEventSource:
    return InMemoryEventSource()


@pytest.fixture
def ledger(source: InMemoryEventSource) -> LedgerFactory:
    return LedgerFactory(source)


@pytest.fixture
def checkpoints() -> InMemoryCheckpointStore:
    return InMemoryCheckpointStore()
