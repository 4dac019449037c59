"""
SQLAlchemy Unit of Work: one transaction per handler write.
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import IndexerError, PersistenceError, UnitOfWorkError

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from sqlalchemy.ext.asyncio import AsyncSession

    AsyncSessionFactory = Callable[[], AsyncSession]

logger = logging.getLogger(__name__)


class UnitOfWork:
    """
    Transaction scope over an AsyncSession created from a session factory.

    ```python
    async with UnitOfWork(session_factory) as uow:
        uow.session.add(row)
    ```

    Leaving the block normally commits; leaving it with an exception rolls
    back and re-raises the original exception unchanged, so a
    ``DependencyNotFoundError`` raised mid-write still reaches the retry
    executor as itself. Commit failures (constraint violations, lost
    connections) are raised as :class:`UnitOfWorkError`; driver errors raised
    inside the block are re-raised as :class:`PersistenceError`.
    """

    def __init__(self, session_factory: AsyncSessionFactory) -> None:
        self._session_factory = session_factory
        self._session: AsyncSession | None = None

    @property
    def session(self) -> AsyncSession:
        """Get the active session. Raises if the scope was not entered."""
        if self._session is None:
            raise UnitOfWorkError(
                "Session not yet created. Ensure __aenter__ was called."
            )
        return self._session

    async def __aenter__(self) -> UnitOfWork:
        try:
            self._session = self._session_factory()
            if not self._session.in_transaction():
                await self._session.begin()
            return self
        except Exception as e:  # noqa: BLE001
            await self._close()
            raise UnitOfWorkError(f"Failed to open transaction: {e}") from e

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        try:
            if exc_type is None:
                await self.commit()
            else:
                await self.rollback()
        finally:
            await self._close()
        if isinstance(exc_val, SQLAlchemyError):
            raise PersistenceError(f"Store write failed: {exc_val}") from exc_val

    async def flush(self) -> None:
        """Flush pending writes so constraint errors surface inside the scope."""
        await self.session.flush()

    async def commit(self) -> None:
        """Commit the current transaction."""
        try:
            await self.session.commit()
        except Exception as e:  # noqa: BLE001
            with contextlib.suppress(Exception):
                await self.rollback()
            if isinstance(e, IndexerError):
                raise
            raise UnitOfWorkError(f"Failed to commit transaction: {e}") from e

    async def rollback(self) -> None:
        """Rollback the current transaction."""
        try:
            if self.session.in_transaction():
                await self.session.rollback()
        except Exception as e:  # noqa: BLE001
            raise UnitOfWorkError(f"Failed to rollback transaction: {e}") from e

    async def _close(self) -> None:
        if self._session is None:
            return
        try:
            await self._session.close()
        except Exception:  # noqa: BLE001
            logger.warning("Failed to close session", exc_info=True)
        finally:
            self._session = None
