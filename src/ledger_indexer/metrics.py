"""MetricsHook: Prometheus counters/histograms for pipeline operations.

Emits ``ledger_indexer_operation_total`` and
``ledger_indexer_operation_duration_seconds`` with labels
``{operation, event_type, outcome}``. *operation* is the hook operation name
without its event-type suffix (``poller.tick``, ``event.materialize``,
``checkpoint.save``).
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

from .instrumentation import get_hook_registry

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .instrumentation import HookRegistration

_logger = logging.getLogger(__name__)

DEFAULT_METRIC_OPERATIONS: list[str] = [
    "poller.tick.*",
    "event.materialize.*",
    "checkpoint.save.*",
]


class MetricsHook:
    """Records duration and outcome per instrumented operation."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        registry = registry or REGISTRY
        self.counter = Counter(
            "ledger_indexer_operation_total",
            "Instrumented pipeline operations",
            ["operation", "event_type", "outcome"],
            registry=registry,
        )
        self.histogram = Histogram(
            "ledger_indexer_operation_duration_seconds",
            "Pipeline operation duration",
            ["operation", "event_type", "outcome"],
            registry=registry,
        )

    async def __call__(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any:
        event_type = str(attributes.get("event.type", ""))
        name = operation.rsplit(".", 1)[0] if event_type else operation
        start = time.monotonic()
        outcome = "success"
        try:
            return await next_handler()
        except Exception:
            outcome = "error"
            raise
        finally:
            try:
                labels = {"operation": name, "event_type": event_type, "outcome": outcome}
                self.histogram.labels(**labels).observe(time.monotonic() - start)
                self.counter.labels(**labels).inc()
            except Exception:  # noqa: BLE001
                _logger.debug("Failed to emit metrics labels", exc_info=True)


def install_metrics_hook(
    *,
    registry: CollectorRegistry | None = None,
    operations: list[str] | None = None,
    priority: int = -100,
) -> HookRegistration:
    """Install a MetricsHook into the current context's hook registry."""
    registration = get_hook_registry().register(
        MetricsHook(registry),
        priority=priority,
        operations=operations or DEFAULT_METRIC_OPERATIONS,
    )
    _logger.info("Metrics hook installed")
    return registration
