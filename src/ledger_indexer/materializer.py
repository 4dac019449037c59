"""EventMaterializer: decodes an event, runs its handler under retry, then
fires best-effort notifications."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from typing_extensions import assert_never

from . import handlers
from .events import (
    ContentCreated,
    EventKind,
    ProfileCreated,
    ProfileUpdated,
    SubscriptionPurchased,
    TierCreated,
    TierDeactivated,
    TierPriceUpdated,
    decode_payload,
)
from .exceptions import is_dependency_not_found
from .instrumentation import get_hook_registry
from .notifications import notify_new_content, notify_new_subscriber
from .retry import DEFAULT_RETRY_POLICY, RetryPolicy, retry_with_backoff

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .events import EventPayload, LedgerEvent
    from .persistence.uow import AsyncSessionFactory

logger = logging.getLogger(__name__)


class EventMaterializer:
    """Applies ledger events to the relational read view.

    Every handler call is wrapped in :func:`retry_with_backoff`, retrying
    only on :class:`DependencyNotFoundError`. Notifications run after the
    handler's transaction committed and never fail the event.
    """

    def __init__(
        self,
        session_factory: AsyncSessionFactory,
        *,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._session_factory = session_factory
        self._retry_policy = retry_policy
        self._sleep = sleep

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    async def apply(self, event: LedgerEvent) -> handlers.WriteResult:
        """Materialize one event.

        Raises:
            MalformedEventError: If the payload cannot be decoded.
            DependencyNotFoundError: If a dependency is still missing after
                every retry.
            PersistenceError: If the store write fails.
        """
        return await get_hook_registry().execute_all(
            f"event.materialize.{event.kind.value}",
            {
                "event.type": event.kind.value,
                "event.tx_digest": event.position.tx_digest,
                "event.seq": event.position.event_seq,
            },
            lambda: self._apply_internal(event),
        )

    async def _apply_internal(self, event: LedgerEvent) -> handlers.WriteResult:
        payload = decode_payload(event)
        result = await retry_with_backoff(
            lambda: self._dispatch(event, payload),
            is_dependency_not_found,
            self._retry_policy,
            sleep=self._sleep,
            description=f"{event.kind.value} at {event.position}",
        )
        if result.created:
            await self._notify(event, payload, result)
        return result

    async def _dispatch(
        self, event: LedgerEvent, payload: EventPayload
    ) -> handlers.WriteResult:
        sf = self._session_factory
        kind, position = event.kind, event.position
        match kind:
            case EventKind.PROFILE_CREATED:
                assert isinstance(payload, ProfileCreated)
                return await handlers.handle_profile_created(sf, payload, position)
            case EventKind.PROFILE_UPDATED:
                assert isinstance(payload, ProfileUpdated)
                return await handlers.handle_profile_updated(
                    sf, payload, position, event_timestamp_ms=event.timestamp_ms
                )
            case EventKind.TIER_CREATED:
                assert isinstance(payload, TierCreated)
                return await handlers.handle_tier_created(sf, payload, position)
            case EventKind.TIER_PRICE_UPDATED:
                assert isinstance(payload, TierPriceUpdated)
                return await handlers.handle_tier_price_updated(sf, payload, position)
            case EventKind.TIER_DEACTIVATED:
                assert isinstance(payload, TierDeactivated)
                return await handlers.handle_tier_deactivated(sf, payload, position)
            case EventKind.SUBSCRIPTION_PURCHASED:
                assert isinstance(payload, SubscriptionPurchased)
                return await handlers.handle_subscription_purchased(
                    sf, payload, position
                )
            case EventKind.CONTENT_CREATED:
                assert isinstance(payload, ContentCreated)
                return await handlers.handle_content_created(sf, payload, position)
            case _:
                assert_never(kind)

    async def _notify(
        self, event: LedgerEvent, payload: Any, result: handlers.WriteResult
    ) -> None:
        try:
            if isinstance(payload, ContentCreated) and result.row_id and result.creator_id:
                await notify_new_content(
                    self._session_factory, result.row_id, result.creator_id
                )
            elif isinstance(payload, SubscriptionPurchased) and result.creator_id:
                await notify_new_subscriber(
                    self._session_factory,
                    result.creator_id,
                    payload.subscriber,
                    payload.tier_name or payload.tier_id,
                )
        except Exception:  # noqa: BLE001
            logger.exception(
                "Notification for %s at %s failed", event.kind.value, event.position
            )
