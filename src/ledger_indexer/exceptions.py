"""Exception hierarchy for the ledger indexer."""

from __future__ import annotations


class IndexerError(Exception):
    """Root exception for the entire ledger indexer."""


class ConfigurationError(IndexerError):
    """Raised when the runtime configuration is missing or invalid."""


class MaterializationError(IndexerError):
    """Base class for failures while applying an event to the store."""


class DependencyNotFoundError(MaterializationError):
    """Raised when a row produced by another event kind is not yet materialized.

    This is the only retryable condition: the event kinds are fetched
    independently, so a child event can be seen before its parent.
    """

    def __init__(self, entity_type: str, keys: object, detail: str = "") -> None:
        self.entity_type = entity_type
        self.keys = keys
        message = f"{entity_type} not found for {keys!r}"
        if detail:
            message = f"{message}. {detail}"
        super().__init__(message)


class MalformedEventError(MaterializationError):
    """Raised when an event payload cannot be decoded."""


class PersistenceError(IndexerError):
    """Base class for all relational store failures."""


class CheckpointError(PersistenceError):
    """Raised when checkpoint read/write fails."""


class UnitOfWorkError(PersistenceError):
    """Raised when a transaction cannot be committed or rolled back."""


class EventSourceError(IndexerError):
    """Raised when the event log cannot be queried."""


class InvalidCursorError(EventSourceError):
    """Raised when the event log rejects the cursor a poller resumed from.

    Typically happens after the source pruned the history the cursor points
    into; the poller restarts from the beginning of the log.
    """


def is_dependency_not_found(error: BaseException) -> bool:
    """Retry predicate recognizing missing-dependency failures only."""
    return isinstance(error, DependencyNotFoundError)
