"""Profile handlers: creator rows keyed by address and profile id."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select

from ..events import from_millis
from ..exceptions import DependencyNotFoundError
from ..persistence.models import Creator, utcnow
from ..persistence.uow import UnitOfWork
from .lookups import find_creator_by_address
from .result import WriteResult

if TYPE_CHECKING:
    from ..events import EventPosition, ProfileCreated, ProfileUpdated
    from ..persistence.uow import AsyncSessionFactory

logger = logging.getLogger(__name__)


async def handle_profile_created(
    session_factory: AsyncSessionFactory,
    payload: ProfileCreated,
    position: EventPosition,
) -> WriteResult:
    """Upsert the creator by address with its profile id and name."""
    async with UnitOfWork(session_factory) as uow:
        creator = await find_creator_by_address(uow.session, payload.creator)
        created = creator is None
        if creator is None:
            creator = Creator(address=payload.creator, bio="")
            if payload.timestamp is not None:
                creator.created_at = from_millis(payload.timestamp)
                creator.updated_at = creator.created_at
            uow.session.add(creator)
        creator.profile_id = payload.profile_id
        creator.name = payload.name
        await uow.flush()
        row_id = creator.id

    logger.info(
        "Indexed creator %s (%s) at %s", payload.name, payload.profile_id, position
    )
    return WriteResult(created=created, row_id=row_id)


async def handle_profile_updated(
    session_factory: AsyncSessionFactory,
    payload: ProfileUpdated,
    position: EventPosition,
    *,
    event_timestamp_ms: int | None = None,
) -> WriteResult:
    """Update name, bio and avatar of an existing creator by profile id.

    *updated_at* comes from the payload timestamp, else the ledger's event
    timestamp, else the current time.

    Raises:
        DependencyNotFoundError: If the profile has not been created yet.
    """
    async with UnitOfWork(session_factory) as uow:
        result = await uow.session.execute(
            select(Creator).where(Creator.profile_id == payload.profile_id)
        )
        creator = result.scalar_one_or_none()
        if creator is None:
            raise DependencyNotFoundError(
                "Creator",
                {"profile_id": payload.profile_id},
                "ProfileCreated event may not have arrived yet.",
            )
        creator.name = payload.name
        creator.bio = payload.bio
        creator.avatar_url = payload.avatar_url or None
        timestamp = (
            payload.timestamp if payload.timestamp is not None else event_timestamp_ms
        )
        creator.updated_at = (
            from_millis(timestamp) if timestamp is not None else utcnow()
        )
        row_id = creator.id

    logger.info("Updated profile %s at %s", payload.profile_id, position)
    return WriteResult(created=False, row_id=row_id)
