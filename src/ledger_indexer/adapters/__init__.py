"""Event source and checkpoint store implementations."""

from __future__ import annotations

from .memory import InMemoryCheckpointStore, InMemoryEventSource
from .sui import FULLNODE_URLS, SuiEventSource

__all__ = [
    "FULLNODE_URLS",
    "InMemoryCheckpointStore",
    "InMemoryEventSource",
    "SuiEventSource",
]
