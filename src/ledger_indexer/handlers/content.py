"""Content handler: content row plus its tier junction, written atomically."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete, select

from ..events import from_millis
from ..exceptions import DependencyNotFoundError
from ..persistence.models import Content, ContentTier
from ..persistence.uow import UnitOfWork
from .lookups import find_tier, require_creator_by_address
from .result import WriteResult

if TYPE_CHECKING:
    from ..events import ContentCreated, EventPosition
    from ..persistence.uow import AsyncSessionFactory

logger = logging.getLogger(__name__)


async def handle_content_created(
    session_factory: AsyncSessionFactory,
    payload: ContentCreated,
    position: EventPosition,
) -> WriteResult:
    """Upsert the content and replace its tier set in one transaction.

    Every referenced tier is resolved on each attempt. When any is missing
    the transaction rolls back, leaving neither the content change nor a
    partial tier set behind.

    Raises:
        DependencyNotFoundError: If the creator or any referenced tier is
            not indexed yet; lists every missing tier id.
    """
    published_at = from_millis(payload.created_at)
    async with UnitOfWork(session_factory) as uow:
        session = uow.session
        creator = await require_creator_by_address(session, payload.creator)

        result = await session.execute(
            select(Content).where(Content.content_id == payload.content_id)
        )
        content = result.scalar_one_or_none()
        created = content is None
        if content is None:
            content = Content(
                content_id=payload.content_id,
                creator_id=creator.id,
                created_at=published_at,
            )
            session.add(content)
        content.title = payload.title
        content.description = payload.description
        content.content_type = payload.content_type
        content.blob_id = payload.walrus_blob_id
        content.preview_blob_id = payload.preview_blob_id or None
        content.is_public = payload.is_public
        content.is_draft = False
        content.published_at = published_at
        await uow.flush()

        await session.execute(
            delete(ContentTier).where(ContentTier.content_id == content.id)
        )

        missing: list[str] = []
        linked = 0
        for tier_id in dict.fromkeys(payload.tier_ids):
            tier = await find_tier(session, tier_id)
            if tier is None:
                missing.append(tier_id)
                continue
            session.add(ContentTier(content_id=content.id, tier_id=tier.id))
            linked += 1
        if missing:
            raise DependencyNotFoundError(
                "Tier",
                {"tier_ids": missing},
                "TierCreated events may not have arrived yet.",
            )
        await uow.flush()
        row_id = content.id

    logger.info(
        "Indexed content %s (%s) with %d tier(s) at %s",
        payload.title,
        payload.content_id,
        linked,
        position,
    )
    return WriteResult(created=created, row_id=row_id, creator_id=creator.id)
