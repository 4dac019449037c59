"""Instrumentation hooks: wrap pipeline operations with filtered async hooks."""

from __future__ import annotations

import fnmatch
import logging
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger("ledger_indexer.instrumentation")

_MATCH_CACHE_MAX_SIZE = 2048


@runtime_checkable
class InstrumentationHook(Protocol):
    """Protocol for instrumentation hooks (metrics, tracing, ...)."""

    async def __call__(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Wrap an operation with instrumentation."""
        ...


class HookRegistration:
    """A registered hook with operation glob filtering and priority."""

    def __init__(
        self,
        hook: InstrumentationHook,
        *,
        priority: int = 0,
        operations: list[str] | None = None,
    ) -> None:
        self.hook = hook
        self.priority = priority
        self.operations = operations or []
        self._match_cache: dict[str, bool] = {}

    def matches(self, operation: str) -> bool:
        """Check if this registration applies to the operation."""
        if not self.operations:
            return True
        if operation in self._match_cache:
            return self._match_cache[operation]
        matched = any(
            fnmatch.fnmatch(operation, pattern) for pattern in self.operations
        )
        if len(self._match_cache) >= _MATCH_CACHE_MAX_SIZE:
            self._match_cache.clear()
        self._match_cache[operation] = matched
        return matched


class HookRegistry:
    """Registry for instrumentation hooks, executed as a priority-ordered chain."""

    def __init__(self) -> None:
        self._registrations: list[HookRegistration] = []

    def register(
        self,
        hook: InstrumentationHook,
        *,
        priority: int = 0,
        operations: list[str] | None = None,
    ) -> HookRegistration:
        """Register a hook, optionally limited to operation globs."""
        registration = HookRegistration(
            hook, priority=priority, operations=operations
        )
        self._registrations.append(registration)
        self._registrations.sort(key=lambda r: r.priority)
        return registration

    async def execute_all(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Execute all matching hooks in priority order around *next_handler*."""
        matching = [r for r in self._registrations if r.matches(operation)]
        if not matching:
            return await next_handler()

        async def pipeline(index: int = 0) -> Any:
            if index >= len(matching):
                return await next_handler()
            return await matching[index].hook(
                operation,
                attributes,
                lambda: pipeline(index + 1),
            )

        return await pipeline()


_hook_registry_var: ContextVar[HookRegistry | None] = ContextVar(
    "ledger_indexer_hook_registry", default=None
)


def get_hook_registry() -> HookRegistry:
    """Get the hook registry for the current context.

    Creates a fresh ``HookRegistry`` on first access within each context.
    Tasks spawned afterwards share the registry of the context they were
    created in, so install hooks before starting pollers.
    """
    registry = _hook_registry_var.get()
    if registry is None:
        registry = HookRegistry()
        _hook_registry_var.set(registry)
    return registry


def set_hook_registry(registry: HookRegistry) -> None:
    """Set a custom hook registry in the current context."""
    _hook_registry_var.set(registry)
