"""
In-app notifications produced after content and subscriptions are indexed.

These are best-effort side effects: callers run them after the core write
committed, in their own transaction, and only log their failures.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select

from .persistence.models import (
    Content,
    ContentTier,
    Creator,
    Notification,
    NotificationType,
    Subscription,
    utcnow,
)
from .persistence.uow import UnitOfWork

if TYPE_CHECKING:
    import uuid

    from .persistence.uow import AsyncSessionFactory

logger = logging.getLogger(__name__)


def format_address(address: str) -> str:
    """Shorten a ledger address for display: ``0x1234...abcd``."""
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


async def notify_new_content(
    session_factory: AsyncSessionFactory,
    content_id: uuid.UUID,
    creator_id: uuid.UUID,
) -> int:
    """Notify active subscribers of the content's tiers who are also creators.

    Content without tiers is open to everyone and notifies nobody.

    Returns:
        Number of notifications written.
    """
    async with UnitOfWork(session_factory) as uow:
        session = uow.session
        content = await session.get(Content, content_id)
        creator = await session.get(Creator, creator_id)
        if content is None or creator is None:
            logger.error(
                "Cannot notify for content %s: content or creator %s missing",
                content_id,
                creator_id,
            )
            return 0

        tier_ids = list(
            (
                await session.execute(
                    select(ContentTier.tier_id).where(
                        ContentTier.content_id == content.id
                    )
                )
            ).scalars()
        )
        if not tier_ids:
            logger.debug("Content %s has no tiers, no notifications", content.title)
            return 0

        now = utcnow()
        subscribers = list(
            (
                await session.execute(
                    select(Subscription.subscriber)
                    .where(
                        Subscription.tier_id.in_(tier_ids),
                        Subscription.is_active.is_(True),
                        Subscription.starts_at <= now,
                        Subscription.expires_at >= now,
                    )
                    .distinct()
                )
            ).scalars()
        )
        if not subscribers:
            logger.debug("No active subscribers for content %s", content.title)
            return 0

        recipients = (
            await session.execute(
                select(Creator.id).where(Creator.address.in_(subscribers))
            )
        ).scalars()

        count = 0
        for recipient_id in recipients:
            session.add(
                Notification(
                    recipient_id=recipient_id,
                    type=NotificationType.NEW_CONTENT.value,
                    title=f"New post from {creator.name}",
                    message=f"{creator.name} published new content: {content.title}",
                    actor_id=creator.address,
                    actor_name=creator.name,
                    content_id=str(content.id),
                    is_read=False,
                )
            )
            count += 1

    logger.info("Created %d notification(s) for content %s", count, content.title)
    return count


async def notify_new_subscriber(
    session_factory: AsyncSessionFactory,
    creator_id: uuid.UUID,
    subscriber: str,
    tier_name: str,
) -> None:
    """Tell a creator someone subscribed to one of their tiers."""
    async with UnitOfWork(session_factory) as uow:
        session = uow.session
        creator = await session.get(Creator, creator_id)
        if creator is None:
            logger.warning(
                "Creator %s not found, skipping subscriber notification", creator_id
            )
            return
        subscriber_name = (
            await session.execute(
                select(Creator.name).where(Creator.address == subscriber)
            )
        ).scalar_one_or_none() or format_address(subscriber)

        session.add(
            Notification(
                recipient_id=creator.id,
                type=NotificationType.NEW_SUBSCRIBER.value,
                title="New subscriber!",
                message=f"{subscriber_name} subscribed to your {tier_name} tier",
                actor_id=subscriber,
                actor_name=subscriber_name,
                content_id=None,
                is_read=False,
            )
        )

    logger.info("Created subscriber notification for creator %s", creator.name)
