"""LedgerIndexer: runs one poller per event kind."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .events import EventKind
from .materializer import EventMaterializer
from .persistence.checkpoint_store import SQLAlchemyCheckpointStore
from .poller import EventPoller
from .ports import IBackgroundWorker

if TYPE_CHECKING:
    from collections.abc import Iterable
    from types import TracebackType

    from .config import IndexerConfig
    from .persistence.database import Database
    from .ports import ICheckpointStore, IEventSource

logger = logging.getLogger(__name__)


class LedgerIndexer(IBackgroundWorker):
    """
    Owns the pollers of every indexed event kind.

    ```python
    async with LedgerIndexer(source, checkpoints, materializer) as indexer:
        await stop_event.wait()
    ```

    Pollers run independently; none waits on another.
    """

    def __init__(
        self,
        source: IEventSource,
        checkpoint_store: ICheckpointStore,
        materializer: EventMaterializer,
        *,
        kinds: Iterable[EventKind] = tuple(EventKind),
        page_size: int = 50,
        poll_interval: float = 5.0,
    ) -> None:
        self.pollers: dict[EventKind, EventPoller] = {
            kind: EventPoller(
                kind,
                source,
                checkpoint_store,
                materializer,
                page_size=page_size,
                poll_interval=poll_interval,
            )
            for kind in kinds
        }

    async def start(self) -> None:
        for poller in self.pollers.values():
            await poller.start()
        logger.info(
            "Indexing %d event kind(s): %s",
            len(self.pollers),
            ", ".join(kind.value for kind in self.pollers),
        )

    async def stop(self) -> None:
        await asyncio.gather(*(poller.stop() for poller in self.pollers.values()))
        logger.info("Indexer stopped")

    async def run_once(self) -> dict[EventKind, int]:
        """Run one tick of every poller concurrently; return events seen per kind."""
        results = await asyncio.gather(
            *(poller.run_once() for poller in self.pollers.values())
        )
        return {
            kind: result.events_seen
            for kind, result in zip(self.pollers, results)
        }

    async def __aenter__(self) -> LedgerIndexer:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()


def build_indexer(
    config: IndexerConfig,
    database: Database,
    source: IEventSource,
    *,
    kinds: Iterable[EventKind] = tuple(EventKind),
) -> LedgerIndexer:
    """Wire the SQLAlchemy checkpoint store and materializer for *config*."""
    materializer = EventMaterializer(
        database.session_factory, retry_policy=config.retry_policy()
    )
    return LedgerIndexer(
        source,
        SQLAlchemyCheckpointStore(database.session_factory),
        materializer,
        kinds=kinds,
        page_size=config.page_size,
        poll_interval=config.poll_interval_seconds,
    )
