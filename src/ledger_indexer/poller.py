"""EventPoller: one checkpointed polling loop per ledger event kind."""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .exceptions import InvalidCursorError
from .instrumentation import get_hook_registry
from .ports import IBackgroundWorker

if TYPE_CHECKING:
    from .events import EventKind, EventPage, EventPosition
    from .materializer import EventMaterializer
    from .ports import ICheckpointStore, IEventSource

logger = logging.getLogger(__name__)


class PollerState(str, enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    PROCESSING = "processing"


@dataclass(frozen=True)
class TickResult:
    """Summary of one poll tick."""

    events_seen: int = 0
    events_failed: int = 0
    has_next_page: bool = False
    cursor: EventPosition | None = None
    fetch_failed: bool = False


class EventPoller(IBackgroundWorker):
    """
    Polls one event kind, materializes each event and checkpoints per page.

    Events of the kind are processed strictly in log order. An event that
    ultimately fails is logged and skipped; the checkpoint still advances
    past the page so one bad event never blocks its kind.
    """

    def __init__(
        self,
        kind: EventKind,
        source: IEventSource,
        checkpoint_store: ICheckpointStore,
        materializer: EventMaterializer,
        *,
        page_size: int = 50,
        poll_interval: float = 5.0,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self.kind = kind
        self._source = source
        self._checkpoint_store = checkpoint_store
        self._materializer = materializer
        self._page_size = page_size
        self._poll_interval = poll_interval
        self._cursor: EventPosition | None = None
        self._cursor_loaded = False
        self._state = PollerState.IDLE
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def cursor(self) -> EventPosition | None:
        """Position the next fetch resumes after."""
        return self._cursor

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(
            self.run(self._stop_event), name=f"poller-{self.kind.value}"
        )
        logger.info("Poller %s started", self.kind.value)

    async def stop(self) -> None:
        self._stop_event.set()
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        self._state = PollerState.IDLE
        logger.info("Poller %s stopped", self.kind.value)

    async def run(self, stop_event: asyncio.Event) -> None:
        """Tick until *stop_event* is set.

        Ticks again immediately while the source reports more pages,
        otherwise waits the poll interval.
        """
        while not stop_event.is_set():
            try:
                result = await self.run_once()
            except asyncio.CancelledError:
                logger.debug("Poller %s cancelled", self.kind.value)
                raise
            except Exception:
                # Checkpoint writes failing, for example.
                logger.exception("Poller %s tick failed", self.kind.value)
                result = TickResult(fetch_failed=True, cursor=self._cursor)

            if result.has_next_page and not result.fetch_failed:
                continue
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(stop_event.wait(), timeout=self._poll_interval)

    async def run_once(self) -> TickResult:
        """Fetch and process a single page."""
        return await get_hook_registry().execute_all(
            f"poller.tick.{self.kind.value}",
            {"event.type": self.kind.value},
            self._tick,
        )

    async def _tick(self) -> TickResult:
        if not self._cursor_loaded:
            self._cursor = await self._checkpoint_store.get(self.kind.value)
            self._cursor_loaded = True
            logger.info(
                "Poller %s resuming after %s", self.kind.value, self._cursor or "start"
            )

        page = await self._fetch()
        if page is None:
            return TickResult(fetch_failed=True, cursor=self._cursor)

        failed = await self._process_page(page)
        if page.events:
            position = page.next_position or page.events[-1].position
            await self._checkpoint_store.set(self.kind.value, position)
            self._cursor = position
            logger.info(
                "Poller %s processed %d event(s), %d failed, checkpoint %s",
                self.kind.value,
                len(page.events),
                failed,
                position,
            )
        return TickResult(
            events_seen=len(page.events),
            events_failed=failed,
            has_next_page=page.has_next_page,
            cursor=self._cursor,
        )

    async def _fetch(self) -> EventPage | None:
        self._state = PollerState.FETCHING
        try:
            return await self._source.fetch(self.kind, self._cursor, self._page_size)
        except InvalidCursorError as e:
            logger.warning(
                "Poller %s cursor %s rejected, restarting from the beginning: %s",
                self.kind.value,
                self._cursor,
                e,
            )
            self._cursor = None
            return None
        except Exception as e:
            logger.error("Poller %s fetch failed: %s", self.kind.value, e)
            return None
        finally:
            self._state = PollerState.IDLE

    async def _process_page(self, page: EventPage) -> int:
        self._state = PollerState.PROCESSING
        failed = 0
        try:
            for event in page.events:
                try:
                    await self._materializer.apply(event)
                except asyncio.CancelledError:
                    raise
                except Exception:
                    failed += 1
                    logger.exception(
                        "Dropping %s event at %s",
                        event.kind.value,
                        event.position,
                        extra={
                            "event_type": event.kind.value,
                            "tx_digest": event.position.tx_digest,
                            "event_seq": event.position.event_seq,
                        },
                    )
        finally:
            self._state = PollerState.IDLE
        return failed
