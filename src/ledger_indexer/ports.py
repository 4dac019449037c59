"""Protocols for the indexing pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .events import EventKind, EventPage, EventPosition


@runtime_checkable
class ICheckpointStore(Protocol):
    """Protocol for persisting the last consumed position per event kind."""

    async def get(self, event_type: str) -> EventPosition | None:
        """Return the last saved position; None means start of the log."""
        ...

    async def set(self, event_type: str, position: EventPosition) -> None:
        """Persist *position* after a page, overwriting any prior value."""
        ...


@runtime_checkable
class IEventSource(Protocol):
    """Protocol for the append-only ledger event log."""

    async def fetch(
        self,
        kind: EventKind,
        after: EventPosition | None,
        limit: int,
    ) -> EventPage:
        """Return up to *limit* events of *kind* strictly after *after*, ascending.

        Raises:
            InvalidCursorError: If the log no longer accepts *after*.
            EventSourceError: For any other query failure.
        """
        ...


@runtime_checkable
class IBackgroundWorker(Protocol):
    """Lifecycle protocol for long-running pollers."""

    async def start(self) -> None:
        """Start the background process."""
        ...

    async def stop(self) -> None:
        """Stop the background process."""
        ...
