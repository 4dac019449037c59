"""Ledger event kinds, positions and decoded payload models."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import MalformedEventError


class EventKind(str, enum.Enum):
    """Closed set of ledger event kinds the indexer materializes.

    The value is the checkpoint key; ``module`` and ``struct`` form the
    on-chain event type ``<package>::<module>::<struct>``.
    """

    PROFILE_CREATED = "ProfileCreated"
    PROFILE_UPDATED = "ProfileUpdated"
    TIER_CREATED = "TierCreated"
    TIER_PRICE_UPDATED = "TierPriceUpdated"
    TIER_DEACTIVATED = "TierDeactivated"
    SUBSCRIPTION_PURCHASED = "SubscriptionPurchased"
    CONTENT_CREATED = "ContentCreated"

    @property
    def module(self) -> str:
        return _MODULES[self]

    @property
    def struct(self) -> str:
        return self.value

    def move_event_type(self, package_id: str) -> str:
        """Return the fully qualified Move event type for *package_id*."""
        return f"{package_id}::{self.module}::{self.struct}"


_MODULES: dict[EventKind, str] = {
    EventKind.PROFILE_CREATED: "profile",
    EventKind.PROFILE_UPDATED: "profile",
    EventKind.TIER_CREATED: "subscription",
    EventKind.TIER_PRICE_UPDATED: "subscription",
    EventKind.TIER_DEACTIVATED: "subscription",
    EventKind.SUBSCRIPTION_PURCHASED: "subscription",
    EventKind.CONTENT_CREATED: "content",
}


@dataclass(frozen=True)
class EventPosition:
    """Opaque position of one event in a kind's log.

    ``event_seq`` is the ledger's decimal sequence string, kept verbatim.
    """

    tx_digest: str
    event_seq: str

    def as_cursor(self) -> dict[str, str]:
        return {"txDigest": self.tx_digest, "eventSeq": self.event_seq}

    @classmethod
    def from_cursor(cls, cursor: dict[str, Any]) -> EventPosition:
        return cls(tx_digest=str(cursor["txDigest"]), event_seq=str(cursor["eventSeq"]))

    def __str__(self) -> str:
        return f"{self.tx_digest}:{self.event_seq}"


@dataclass(frozen=True)
class LedgerEvent:
    """One raw event fetched from the log, payload not yet decoded."""

    kind: EventKind
    position: EventPosition
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp_ms: int | None = None


@dataclass(frozen=True)
class EventPage:
    """One page of a kind's log as returned by an event source."""

    events: list[LedgerEvent]
    next_position: EventPosition | None = None
    has_next_page: bool = False


def from_millis(value: int) -> datetime:
    """Convert a ledger millisecond timestamp to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


# ── Payloads ─────────────────────────────────────────────────────────
#
# Field names follow the Move structs. u64 values arrive as decimal strings
# and are coerced to int.


class EventPayload(BaseModel):
    """Base class for decoded event payloads."""

    model_config = ConfigDict(frozen=True, extra="ignore")


class ProfileCreated(EventPayload):
    profile_id: str
    creator: str
    name: str
    timestamp: int | None = None


class ProfileUpdated(EventPayload):
    profile_id: str
    creator: str
    name: str
    bio: str = ""
    avatar_url: str = ""
    timestamp: int | None = None


class TierCreated(EventPayload):
    tier_id: str
    creator: str
    name: str
    description: str = ""
    price: int = Field(ge=0)
    is_active: bool = True
    created_at: int | None = None


class TierPriceUpdated(EventPayload):
    tier_id: str
    creator: str
    old_price: int = Field(ge=0)
    new_price: int = Field(ge=0)
    timestamp: int | None = None


class TierDeactivated(EventPayload):
    tier_id: str
    creator: str
    timestamp: int | None = None


class SubscriptionPurchased(EventPayload):
    subscription_id: str
    subscriber: str
    creator: str
    tier_id: str
    tier_name: str = ""
    amount: int = Field(ge=0)
    started_at: int
    expires_at: int


class ContentCreated(EventPayload):
    content_id: str
    creator: str
    title: str
    description: str = ""
    content_type: str
    walrus_blob_id: str
    preview_blob_id: str = ""
    tier_ids: list[str] = Field(default_factory=list)
    is_public: bool = False
    created_at: int


PAYLOAD_MODELS: dict[EventKind, type[EventPayload]] = {
    EventKind.PROFILE_CREATED: ProfileCreated,
    EventKind.PROFILE_UPDATED: ProfileUpdated,
    EventKind.TIER_CREATED: TierCreated,
    EventKind.TIER_PRICE_UPDATED: TierPriceUpdated,
    EventKind.TIER_DEACTIVATED: TierDeactivated,
    EventKind.SUBSCRIPTION_PURCHASED: SubscriptionPurchased,
    EventKind.CONTENT_CREATED: ContentCreated,
}


def decode_payload(event: LedgerEvent) -> EventPayload:
    """Validate the raw payload of *event* into its kind's model.

    Raises:
        MalformedEventError: If the payload does not match the model.
    """
    model = PAYLOAD_MODELS[event.kind]
    try:
        return model.model_validate(event.payload)
    except ValidationError as e:
        raise MalformedEventError(
            f"Malformed {event.kind.value} payload at {event.position}: {e}"
        ) from e
