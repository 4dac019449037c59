"""Event handlers: one idempotent store write per ledger event kind.

Handlers are stateless ``(session_factory, payload, position)`` coroutines
that make a single attempt; retrying is the materializer's job.
"""

from __future__ import annotations

from .content import handle_content_created
from .profile import handle_profile_created, handle_profile_updated
from .result import WriteResult
from .subscription import (
    handle_subscription_purchased,
    handle_tier_created,
    handle_tier_deactivated,
    handle_tier_price_updated,
)

__all__ = [
    "WriteResult",
    "handle_content_created",
    "handle_profile_created",
    "handle_profile_updated",
    "handle_subscription_purchased",
    "handle_tier_created",
    "handle_tier_deactivated",
    "handle_tier_price_updated",
]
