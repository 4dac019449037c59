"""Relational read view: models, store handle, checkpoint store."""

from __future__ import annotations

from .checkpoint_store import SQLAlchemyCheckpointStore
from .database import Database
from .models import (
    Base,
    Content,
    ContentTier,
    Creator,
    IndexerCursor,
    Notification,
    NotificationType,
    Subscription,
    Tier,
)
from .uow import UnitOfWork

__all__ = [
    "Base",
    "Content",
    "ContentTier",
    "Creator",
    "Database",
    "IndexerCursor",
    "Notification",
    "NotificationType",
    "SQLAlchemyCheckpointStore",
    "Subscription",
    "Tier",
    "UnitOfWork",
]
