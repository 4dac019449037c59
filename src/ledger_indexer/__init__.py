"""Ledger indexer: checkpointed per-kind polling into a relational read view."""

from __future__ import annotations

from .adapters import InMemoryCheckpointStore, InMemoryEventSource, SuiEventSource
from .config import IndexerConfig
from .events import EventKind, EventPage, EventPosition, LedgerEvent
from .exceptions import (
    CheckpointError,
    ConfigurationError,
    DependencyNotFoundError,
    EventSourceError,
    IndexerError,
    InvalidCursorError,
    MalformedEventError,
    MaterializationError,
    PersistenceError,
    UnitOfWorkError,
    is_dependency_not_found,
)
from .indexer import LedgerIndexer, build_indexer
from .materializer import EventMaterializer
from .persistence import Database, SQLAlchemyCheckpointStore
from .poller import EventPoller, PollerState, TickResult
from .ports import ICheckpointStore, IEventSource
from .retry import DEFAULT_RETRY_POLICY, RetryPolicy, retry_with_backoff

__all__ = [
    "DEFAULT_RETRY_POLICY",
    "CheckpointError",
    "ConfigurationError",
    "Database",
    "DependencyNotFoundError",
    "EventKind",
    "EventMaterializer",
    "EventPage",
    "EventPoller",
    "EventPosition",
    "EventSourceError",
    "ICheckpointStore",
    "IEventSource",
    "InMemoryCheckpointStore",
    "InMemoryEventSource",
    "IndexerConfig",
    "IndexerError",
    "InvalidCursorError",
    "LedgerEvent",
    "LedgerIndexer",
    "MalformedEventError",
    "MaterializationError",
    "PersistenceError",
    "PollerState",
    "RetryPolicy",
    "SQLAlchemyCheckpointStore",
    "SuiEventSource",
    "TickResult",
    "UnitOfWorkError",
    "build_indexer",
    "is_dependency_not_found",
    "retry_with_backoff",
]
