"""Collaborators the login journey reports through.

``MetricsSink`` receives the named durations, ``StepReporter`` groups the
browser actions of a step for tracing, and ``FlowLogger`` writes the
structured lifecycle log lines. None of them may change the outcome of a
step: they observe, the runner decides.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncContextManager, AsyncIterator, Callable, Mapping, Protocol

from playwright.async_api import Error as PlaywrightError

from loadflow.core.logger import get_logger

from .models import Metric


class MetricsSink(Protocol):
    """Receives metrics as soon as the runner produces them."""

    def emit(self, metric: Metric) -> None:  # pragma: no cover - interface definition
        ...


class StepReporter(Protocol):
    """Groups the actions of one named step for tracing/reporting."""

    def step(self, name: str) -> AsyncContextManager[None]:  # pragma: no cover - interface definition
        ...


class RecordingMetricsSink:
    """Keeps every metric in emission order."""

    def __init__(self) -> None:
        self.metrics: list[Metric] = []

    def emit(self, metric: Metric) -> None:
        self.metrics.append(metric)

    @property
    def names(self) -> list[str]:
        return [metric.name for metric in self.metrics]


class LoggingMetricsSink:
    def __init__(self, user_id: str = "-", logger: logging.Logger | None = None) -> None:
        self.user_id = user_id
        self.logger = logger or get_logger()

    def emit(self, metric: Metric) -> None:
        self.logger.info(
            "login_flow.metric %s=%.0fms",
            metric.name,
            metric.value,
            extra={"user_id": self.user_id, "metric": metric.name},
        )


class LocustMetricsSink:
    """Publish metrics on a Locust event bus as custom request statistics.

    ``events`` is ``environment.events``; every metric becomes one entry in
    Locust's statistics table under ``request_type`` with the duration as
    response time.
    """

    def __init__(
        self,
        events: Any,
        *,
        request_type: str = "customStat",
        context: Mapping[str, Any] | None = None,
    ) -> None:
        self.events = events
        self.request_type = request_type
        self.context = dict(context or {})

    def emit(self, metric: Metric) -> None:
        self.events.request.fire(
            request_type=self.request_type,
            name=metric.name,
            response_time=metric.value,
            response_length=0,
            exception=None,
            context=dict(self.context),
        )


class FanoutMetricsSink:
    """Forward each metric to several sinks, in order."""

    def __init__(self, *sinks: MetricsSink) -> None:
        self.sinks: tuple[MetricsSink, ...] = tuple(sinks)

    def emit(self, metric: Metric) -> None:
        for sink in self.sinks:
            sink.emit(metric)


class LocustStepReporter:
    """Report each step as a Locust request entry (``request_type="step"``).

    Failures are reported with their exception and re-raised unchanged.
    """

    def __init__(
        self,
        events: Any,
        *,
        request_type: str = "step",
        context: Mapping[str, Any] | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.events = events
        self.request_type = request_type
        self.context = dict(context or {})
        self.clock = clock

    def _fire(self, name: str, started: float, exc: BaseException | None) -> None:
        self.events.request.fire(
            request_type=self.request_type,
            name=name,
            response_time=max(0.0, (self.clock() - started) * 1000.0),
            response_length=0,
            exception=exc,
            context=dict(self.context),
        )

    @asynccontextmanager
    async def step(self, name: str) -> AsyncIterator[None]:
        started = self.clock()
        try:
            yield
        except Exception as exc:
            self._fire(name, started, exc)
            raise
        self._fire(name, started, None)


class NullStepReporter:
    @asynccontextmanager
    async def step(self, name: str) -> AsyncIterator[None]:
        yield


class TracingStepReporter:
    """Group step actions in the Playwright trace viewer.

    Uses ``BrowserContext.tracing.group``; grouping problems (tracing not
    started, old Playwright) are logged and the step still runs.
    """

    def __init__(self, tracing: Any, logger: logging.Logger | None = None) -> None:
        self._tracing = tracing
        self.logger = logger or get_logger()

    @asynccontextmanager
    async def step(self, name: str) -> AsyncIterator[None]:
        opened = False
        try:
            await self._tracing.group(name)
            opened = True
        except PlaywrightError:
            self.logger.warning("login_flow.trace_group_failed step=%s", name, exc_info=True)
        try:
            yield
        finally:
            if opened:
                try:
                    await self._tracing.group_end()
                except PlaywrightError:
                    self.logger.warning("login_flow.trace_group_end_failed step=%s", name, exc_info=True)


class FlowLogger:
    """Structured log lines at the lifecycle points of one journey."""

    def __init__(self, user_id: str, logger: logging.Logger | None = None) -> None:
        self.user_id = user_id
        self.logger = logger or get_logger()

    def _extra(self, step: str | None = None) -> dict[str, str]:
        extra = {"user_id": self.user_id}
        if step is not None:
            extra["step"] = step
        return extra

    def flow_started(self, base_url: str) -> None:
        self.logger.info("login_flow.started target=%s", base_url, extra=self._extra())

    def step_started(self, step: str) -> None:
        self.logger.info("login_flow.step_started step=%s", step, extra=self._extra(step))

    def step_succeeded(self, step: str, elapsed_ms: float, **details: Any) -> None:
        suffix = "".join(f" {key}={value}" for key, value in details.items())
        self.logger.info(
            "login_flow.step_succeeded step=%s elapsed=%.0fms%s",
            step,
            elapsed_ms,
            suffix,
            extra=self._extra(step),
        )

    def step_failed(self, step: str, exc: BaseException) -> None:
        self.logger.error(
            "login_flow.step_failed step=%s error=%s",
            step,
            exc,
            extra=self._extra(step),
        )

    def flow_completed(self, total_ms: float) -> None:
        self.logger.info("login_flow.completed total=%.0fms", total_ms, extra=self._extra())

    def flow_failed(self, exc: BaseException) -> None:
        self.logger.error("login_flow.failed error=%s", exc, exc_info=exc, extra=self._extra())


__all__ = [
    "FanoutMetricsSink",
    "FlowLogger",
    "LocustMetricsSink",
    "LocustStepReporter",
    "LoggingMetricsSink",
    "MetricsSink",
    "NullStepReporter",
    "RecordingMetricsSink",
    "StepReporter",
    "TracingStepReporter",
]
