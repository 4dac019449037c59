"""Shared row lookups for handlers; each raises on a missing dependency."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from ..exceptions import DependencyNotFoundError
from ..persistence.models import Creator, Tier

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


async def find_creator_by_address(session: AsyncSession, address: str) -> Creator | None:
    result = await session.execute(select(Creator).where(Creator.address == address))
    return result.scalar_one_or_none()


async def find_tier(session: AsyncSession, tier_id: str) -> Tier | None:
    result = await session.execute(select(Tier).where(Tier.tier_id == tier_id))
    return result.scalar_one_or_none()


async def require_creator_by_address(session: AsyncSession, address: str) -> Creator:
    creator = await find_creator_by_address(session, address)
    if creator is None:
        raise DependencyNotFoundError(
            "Creator",
            {"address": address},
            "ProfileCreated event may not have arrived yet.",
        )
    return creator


async def require_tier(session: AsyncSession, tier_id: str) -> Tier:
    tier = await find_tier(session, tier_id)
    if tier is None:
        raise DependencyNotFoundError(
            "Tier",
            {"tier_id": tier_id},
            "TierCreated event may not have arrived yet.",
        )
    return tier
