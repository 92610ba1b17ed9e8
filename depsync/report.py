"""Batch outcome tracking for per-component operations."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable

import structlog

log = structlog.get_logger("depsync.report")


@dataclass
class ComponentOutcome:
    component: str
    status: str = "pending"  # "pending" | "running" | "succeeded" | "failed" | "skipped"
    start_time: float | None = None
    end_time: float | None = None
    detail: str = ""
    error: str | None = None

    @property
    def duration(self) -> float | None:
        if self.start_time and self.end_time:
            return round(self.end_time - self.start_time, 2)
        return None


class BatchReport:
    """Track how each targeted component fared in one operation."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        self.outcomes: list[ComponentOutcome] = []
        self._by_name: dict[str, ComponentOutcome] = {}
        self.callbacks: list[Callable[[ComponentOutcome], None]] = []

    def start(self, component: str) -> None:
        o = ComponentOutcome(component=component, status="running", start_time=time.monotonic())
        self.outcomes.append(o)
        self._by_name[component] = o
        self._notify(o)

    def succeed(self, component: str, detail: str = "") -> None:
        o = self._by_name.get(component)
        if o:
            o.status = "succeeded"
            o.end_time = time.monotonic()
            o.detail = detail
            self._notify(o)

    def fail(self, component: str, error: str) -> None:
        o = self._by_name.get(component)
        if o is None:
            self.start(component)
            o = self._by_name[component]
        o.status = "failed"
        o.end_time = time.monotonic()
        o.error = error
        log.warning("report.component_failed", operation=self.operation, component=component, error=error)
        self._notify(o)

    def skip(self, component: str, reason: str) -> None:
        o = ComponentOutcome(component=component, status="skipped", detail=reason)
        self.outcomes.append(o)
        self._by_name[component] = o
        self._notify(o)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "succeeded")

    @property
    def failed(self) -> list[ComponentOutcome]:
        return [o for o in self.outcomes if o.status == "failed"]

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary_line(self) -> str:
        return f"{self.operation}: {self.succeeded}/{self.total} succeeded"

    def get_summary(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "succeeded": self.succeeded,
            "total": self.total,
            "components": [
                {
                    "component": o.component,
                    "status": o.status,
                    "duration": o.duration,
                    "detail": o.detail,
                    "error": o.error,
                }
                for o in self.outcomes
            ],
        }

    def _notify(self, o: ComponentOutcome) -> None:
        for cb in self.callbacks:
            try:
                cb(o)
            except Exception:
                log.debug("report.callback_error", component=o.component, exc_info=True)
