"""In-memory checkpoint store and event source for tests and dry runs."""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from ..events import EventKind, EventPage, EventPosition, LedgerEvent
from ..instrumentation import get_hook_registry

if TYPE_CHECKING:
    from typing import Any


class InMemoryCheckpointStore:
    """In-memory checkpoint store (e.g. for tests)."""

    def __init__(self) -> None:
        self._positions: dict[str, EventPosition] = {}

    async def get(self, event_type: str) -> EventPosition | None:
        return self._positions.get(event_type)

    async def set(self, event_type: str, position: EventPosition) -> None:
        registry = get_hook_registry()
        await registry.execute_all(
            f"checkpoint.save.{event_type}",
            {
                "event.type": event_type,
                "checkpoint.tx_digest": position.tx_digest,
                "checkpoint.event_seq": position.event_seq,
            },
            lambda: self._set_internal(event_type, position),
        )

    async def _set_internal(self, event_type: str, position: EventPosition) -> None:
        self._positions[event_type] = position


class InMemoryEventSource:
    """Per-kind ordered event logs held in memory.

    ``fail_next`` queues exceptions raised by the following ``fetch`` calls,
    in order, to simulate a flaky or pruned log.
    """

    def __init__(self) -> None:
        self._logs: dict[EventKind, list[LedgerEvent]] = defaultdict(list)
        self._failures: list[BaseException] = []
        self._seq = 0
        self.fetch_calls: list[tuple[EventKind, EventPosition | None, int]] = []

    def append(
        self,
        kind: EventKind,
        payload: dict[str, Any],
        *,
        tx_digest: str | None = None,
        timestamp_ms: int | None = None,
    ) -> LedgerEvent:
        """Append an event to the log of *kind* and return it."""
        self._seq += 1
        position = EventPosition(
            tx_digest=tx_digest or f"tx{self._seq}", event_seq=str(self._seq)
        )
        event = LedgerEvent(
            kind=kind, position=position, payload=payload, timestamp_ms=timestamp_ms
        )
        self._logs[kind].append(event)
        return event

    def fail_next(self, *errors: BaseException) -> None:
        self._failures.extend(errors)

    def events(self, kind: EventKind) -> list[LedgerEvent]:
        return list(self._logs[kind])

    async def fetch(
        self,
        kind: EventKind,
        after: EventPosition | None,
        limit: int,
    ) -> EventPage:
        self.fetch_calls.append((kind, after, limit))
        if self._failures:
            raise self._failures.pop(0)

        log = self._logs[kind]
        start = 0
        if after is not None:
            for index, event in enumerate(log):
                if event.position == after:
                    start = index + 1
                    break
        page = log[start : start + limit]
        has_next_page = start + limit < len(log)
        next_position = page[-1].position if page else after
        return EventPage(
            events=list(page), next_position=next_position, has_next_page=has_next_page
        )
