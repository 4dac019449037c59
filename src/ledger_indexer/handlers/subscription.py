"""Tier and subscription handlers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select

from ..events import from_millis
from ..persistence.models import Subscription, Tier, utcnow
from ..persistence.uow import UnitOfWork
from .lookups import find_tier, require_creator_by_address, require_tier
from .result import WriteResult

if TYPE_CHECKING:
    from ..events import (
        EventPosition,
        SubscriptionPurchased,
        TierCreated,
        TierDeactivated,
        TierPriceUpdated,
    )
    from ..persistence.uow import AsyncSessionFactory

logger = logging.getLogger(__name__)


async def handle_tier_created(
    session_factory: AsyncSessionFactory,
    payload: TierCreated,
    position: EventPosition,
) -> WriteResult:
    """Upsert the tier by tier id under its creator.

    The owning creator is only set on insert.

    Raises:
        DependencyNotFoundError: If the creator profile is not indexed yet.
    """
    async with UnitOfWork(session_factory) as uow:
        creator = await require_creator_by_address(uow.session, payload.creator)
        tier = await find_tier(uow.session, payload.tier_id)
        created = tier is None
        if tier is None:
            tier = Tier(tier_id=payload.tier_id, creator_id=creator.id)
            if payload.created_at is not None:
                tier.created_at = from_millis(payload.created_at)
            uow.session.add(tier)
        tier.name = payload.name
        tier.description = payload.description
        tier.price = payload.price
        tier.is_active = payload.is_active
        await uow.flush()
        row_id = tier.id

    logger.info("Indexed tier %s (%s) at %s", payload.name, payload.tier_id, position)
    return WriteResult(created=created, row_id=row_id, creator_id=creator.id)


async def handle_tier_price_updated(
    session_factory: AsyncSessionFactory,
    payload: TierPriceUpdated,
    position: EventPosition,
) -> WriteResult:
    async with UnitOfWork(session_factory) as uow:
        tier = await require_tier(uow.session, payload.tier_id)
        tier.price = payload.new_price
        row_id = tier.id

    logger.info(
        "Tier %s price %d -> %d at %s",
        payload.tier_id,
        payload.old_price,
        payload.new_price,
        position,
    )
    return WriteResult(created=False, row_id=row_id)


async def handle_tier_deactivated(
    session_factory: AsyncSessionFactory,
    payload: TierDeactivated,
    position: EventPosition,
) -> WriteResult:
    async with UnitOfWork(session_factory) as uow:
        tier = await require_tier(uow.session, payload.tier_id)
        tier.is_active = False
        row_id = tier.id

    logger.info("Deactivated tier %s at %s", payload.tier_id, position)
    return WriteResult(created=False, row_id=row_id)


async def handle_subscription_purchased(
    session_factory: AsyncSessionFactory,
    payload: SubscriptionPurchased,
    position: EventPosition,
) -> WriteResult:
    """Upsert the subscription by subscription id.

    ``is_active`` reflects whether the subscription had expired when the
    event was materialized. The tier is only set on insert.

    Raises:
        DependencyNotFoundError: If the tier is not indexed yet.
    """
    starts_at = from_millis(payload.started_at)
    expires_at = from_millis(payload.expires_at)
    async with UnitOfWork(session_factory) as uow:
        tier = await require_tier(uow.session, payload.tier_id)
        result = await uow.session.execute(
            select(Subscription).where(
                Subscription.subscription_id == payload.subscription_id
            )
        )
        subscription = result.scalar_one_or_none()
        created = subscription is None
        if subscription is None:
            subscription = Subscription(
                subscription_id=payload.subscription_id, tier_id=tier.id
            )
            uow.session.add(subscription)
        subscription.subscriber = payload.subscriber
        subscription.starts_at = starts_at
        subscription.expires_at = expires_at
        subscription.is_active = expires_at > utcnow()
        await uow.flush()
        row_id = subscription.id
        creator_id = tier.creator_id

    logger.info(
        "Indexed subscription %s: %s -> %s (%d) at %s",
        payload.subscription_id,
        payload.subscriber,
        payload.tier_name or payload.tier_id,
        payload.amount,
        position,
    )
    return WriteResult(created=created, row_id=row_id, creator_id=creator_id)
