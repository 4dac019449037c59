"""Database: explicitly constructed store handle shared by all pollers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ..exceptions import PersistenceError
from .models import Base

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Owns the async engine and session factory of the read view.

    Construct one at startup, pass it to every component, and release it with
    a single ``async with``:

    ```python
    async with Database(url) as db:
        ...
    ```
    """

    def __init__(self, url: str, *, echo: bool = False, **engine_kwargs: Any) -> None:
        if url.startswith("sqlite") and ":memory:" in url:
            engine_kwargs.setdefault("poolclass", StaticPool)
            engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
        self._engine: AsyncEngine = create_async_engine(url, echo=echo, **engine_kwargs)
        if self._engine.dialect.name == "sqlite":
            event.listen(
                self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys
            )
        self._session_factory = async_sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False
        )

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def dialect_name(self) -> str:
        return self._engine.dialect.name

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._session_factory

    async def create_schema(self) -> None:
        """Create every table of the read view (development and tests)."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Schema created on %s", self.dialect_name)

    async def ping(self) -> None:
        """Check connectivity.

        Raises:
            PersistenceError: If the database cannot be reached.
        """
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:  # noqa: BLE001
            raise PersistenceError(f"Database connection failed: {e}") from e

    async def dispose(self) -> None:
        """Release every pooled connection."""
        await self._engine.dispose()
        logger.info("Database connections released")

    async def __aenter__(self) -> Database:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.dispose()
