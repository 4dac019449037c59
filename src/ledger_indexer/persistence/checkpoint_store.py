"""SQLAlchemy checkpoint store for per-event-kind cursors."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from ..events import EventPosition
from ..exceptions import CheckpointError
from ..instrumentation import get_hook_registry
from .models import IndexerCursor

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class SQLAlchemyCheckpointStore:
    """Persistent checkpoint store using SQLAlchemy.

    Provides atomic upserts of ``(event_seq, tx_digest)`` per event kind so
    that pollers resume across restarts.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        """
        Initialize checkpoint store with session factory.

        Args:
            session_factory: Factory function that creates new AsyncSession instances.
        """
        self._session_factory = session_factory

    async def get(self, event_type: str) -> EventPosition | None:
        """Retrieve the stored position, or None when the kind never ran."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(IndexerCursor).where(IndexerCursor.event_type == event_type)
                )
                row = result.scalar_one_or_none()
        except Exception as e:  # noqa: BLE001
            raise CheckpointError(
                f"Failed to read checkpoint for {event_type}: {e}"
            ) from e
        if row is None:
            return None
        return EventPosition(tx_digest=row.tx_digest, event_seq=row.event_seq)

    async def set(self, event_type: str, position: EventPosition) -> None:
        """Save or overwrite the position of *event_type*."""
        await get_hook_registry().execute_all(
            f"checkpoint.save.{event_type}",
            {
                "event.type": event_type,
                "checkpoint.tx_digest": position.tx_digest,
                "checkpoint.event_seq": position.event_seq,
            },
            lambda: self._set_internal(event_type, position),
        )

    async def _set_internal(self, event_type: str, position: EventPosition) -> None:
        now = datetime.now(timezone.utc)
        try:
            async with self._session_factory() as session:
                dialect = session.bind.dialect.name if session.bind else ""
                if dialect in ("postgresql", "sqlite"):
                    insert = pg_insert if dialect == "postgresql" else sqlite_insert
                    stmt = (
                        insert(IndexerCursor)
                        .values(
                            event_type=event_type,
                            event_seq=position.event_seq,
                            tx_digest=position.tx_digest,
                            updated_at=now,
                        )
                        .on_conflict_do_update(
                            index_elements=["event_type"],
                            set_={
                                "event_seq": position.event_seq,
                                "tx_digest": position.tx_digest,
                                "updated_at": now,
                            },
                        )
                    )
                    await session.execute(stmt)
                else:
                    # Other dialects: select, then update or insert
                    existing = await session.get(IndexerCursor, event_type)
                    if existing is None:
                        session.add(
                            IndexerCursor(
                                event_type=event_type,
                                event_seq=position.event_seq,
                                tx_digest=position.tx_digest,
                                updated_at=now,
                            )
                        )
                    else:
                        existing.event_seq = position.event_seq
                        existing.tx_digest = position.tx_digest
                        existing.updated_at = now
                await session.commit()
        except Exception as e:  # noqa: BLE001
            raise CheckpointError(
                f"Failed to save checkpoint for {event_type}: {e}"
            ) from e
        logger.debug("Checkpoint %s -> %s", event_type, position)
