"""Tests for HookRegistry and the Prometheus MetricsHook."""

from __future__ import annotations

from typing import Any

import pytest
from prometheus_client import CollectorRegistry

from ledger_indexer.instrumentation import HookRegistry, get_hook_registry
from ledger_indexer.metrics import MetricsHook, install_metrics_hook


class RecordingHook:
    def __init__(self, name: str, log: list[str]) -> None:
        self.name = name
        self.log = log

    async def __call__(
        self, operation: str, attributes: dict[str, Any], next_handler: Any
    ) -> Any:
        self.log.append(f"{self.name}:before")
        result = await next_handler()
        self.log.append(f"{self.name}:after")
        return result


@pytest.mark.asyncio
async def test_hooks_wrap_in_priority_order() -> None:
    log: list[str] = []
    registry = HookRegistry()
    registry.register(RecordingHook("late", log), priority=10)
    registry.register(RecordingHook("early", log), priority=-10)

    async def operation() -> str:
        log.append("op")
        return "done"

    assert await registry.execute_all("poller.tick.TierCreated", {}, operation) == "done"
    assert log == ["early:before", "late:before", "op", "late:after", "early:after"]


@pytest.mark.asyncio
async def test_operation_globs_filter_hooks() -> None:
    log: list[str] = []
    registry = HookRegistry()
    registry.register(RecordingHook("ticks", log), operations=["poller.tick.*"])
    registry.register(RecordingHook("all", log))

    async def operation() -> None:
        return None

    await registry.execute_all(
        "checkpoint.save.TierCreated", {"event.type": "TierCreated"}, operation
    )
    assert log == ["all:before", "all:after"]

    log.clear()
    await registry.execute_all(
        "poller.tick.ContentCreated", {"event.type": "ContentCreated"}, operation
    )
    assert log == ["ticks:before", "all:before", "all:after", "ticks:after"]


def test_registry_is_context_local(hook_registry: HookRegistry) -> None:
    assert get_hook_registry() is hook_registry


@pytest.mark.asyncio
async def test_metrics_hook_counts_outcomes_per_event_type() -> None:
    prom = CollectorRegistry()
    registry = HookRegistry()
    registry.register(MetricsHook(prom))

    async def ok() -> None:
        return None

    async def boom() -> None:
        raise RuntimeError("boom")

    await registry.execute_all(
        "event.materialize.TierCreated", {"event.type": "TierCreated"}, ok
    )
    with pytest.raises(RuntimeError):
        await registry.execute_all(
            "event.materialize.TierCreated", {"event.type": "TierCreated"}, boom
        )

    labels = {"operation": "event.materialize", "event_type": "TierCreated"}
    assert prom.get_sample_value(
        "ledger_indexer_operation_total", {**labels, "outcome": "success"}
    ) == 1.0
    assert prom.get_sample_value(
        "ledger_indexer_operation_total", {**labels, "outcome": "error"}
    ) == 1.0
    assert prom.get_sample_value(
        "ledger_indexer_operation_duration_seconds_count",
        {**labels, "outcome": "success"},
    ) == 1.0


@pytest.mark.asyncio
async def test_install_metrics_hook_uses_current_registry(
    hook_registry: HookRegistry,
) -> None:
    prom = CollectorRegistry()
    install_metrics_hook(registry=prom)

    async def ok() -> None:
        return None

    await hook_registry.execute_all(
        "checkpoint.save.ContentCreated", {"event.type": "ContentCreated"}, ok
    )
    await hook_registry.execute_all("unrelated.operation", {}, ok)

    assert prom.get_sample_value(
        "ledger_indexer_operation_total",
        {
            "operation": "checkpoint.save",
            "event_type": "ContentCreated",
            "outcome": "success",
        },
    ) == 1.0
    assert prom.get_sample_value(
        "ledger_indexer_operation_total",
        {"operation": "unrelated.operation", "event_type": "", "outcome": "success"},
    ) is None
