"""
Health Monitor Loop for healthwatch.

Continuously evaluates the service's probes and:
- Sets per-check and overall status gauges every iteration
- Records every outcome except the analyzer's own in the history store
- Detects overall status transitions
- Logs and publishes each transition exactly once

Usage:
    monitor = MonitorLoop(registry.evaluate, service_name="orders", history=store)
    await monitor.start()
    ...
    await monitor.stop()
"""

from __future__ import annotations
import asyncio
import time
from datetime import timedelta
from enum import Enum
from typing import Awaitable, Callable, Optional

from healthwatch.core.aggregation import TAG_PREDICTIVE
from healthwatch.core.status import HealthStatus, Report
from healthwatch.infrastructure.logging import LogContext, get_logger
from healthwatch.infrastructure.metrics import MetricsCollector, metrics as default_metrics
from healthwatch.monitoring.history import HistoryEntry, HistoryStore
from healthwatch.monitoring.publisher import ChangePublisher

logger = get_logger(__name__)


class MonitorState(Enum):
    """Monitor loop states."""
    RUNNING = "running"
    STOPPED = "stopped"


class MonitorLoop:
    """
    Periodic background evaluation of service health.

    Iterations are strictly sequential. A single asyncio.Event drives both
    the wait between iterations and the loop exit.
    """

    def __init__(
        self,
        evaluate: Callable[[], Awaitable[Report]],
        service_name: str = "Service",
        history: Optional[HistoryStore] = None,
        publisher: Optional[ChangePublisher] = None,
        interval_seconds: float = 15.0,
        history_retention: timedelta = timedelta(days=7),
        metrics: Optional[MetricsCollector] = None,
    ):
        self._evaluate = evaluate
        self.service_name = service_name
        self.history = history
        self.publisher = publisher
        self.interval_seconds = interval_seconds
        self.history_retention = history_retention
        self.metrics = metrics or default_metrics

        self._state = MonitorState.STOPPED
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._last_status: Optional[HealthStatus] = None
        self._iterations = 0
        self._transitions = 0

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def last_status(self) -> Optional[HealthStatus]:
        return self._last_status

    async def start(self) -> None:
        """Start the background loop if not already running."""
        if self._task is not None and not self._task.done():
            return

        self._stop_event.clear()
        if self.publisher is not None:
            self.publisher.reopen()
        self._state = MonitorState.RUNNING
        self._task = asyncio.create_task(self.run())
        logger.info("[MonitorLoop] Started", service=self.service_name)

    async def stop(self) -> None:
        """Signal the loop to exit, wait for it, then dispose the publisher."""
        self._stop_event.set()
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None

        if self.publisher is not None:
            await self.publisher.close()

        self._state = MonitorState.STOPPED
        logger.info("[MonitorLoop] Stopped", service=self.service_name)

    async def run(self) -> None:
        """Run iterations until the stop signal is set."""
        self._state = MonitorState.RUNNING
        while not self._stop_event.is_set():
            try:
                await self.run_iteration()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.exception("[MonitorLoop] Iteration failed", error=str(e))

            await self._wait()
        self._state = MonitorState.STOPPED

    async def _wait(self) -> None:
        """Sleep for the interval or until stopped, whichever comes first."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
        except asyncio.TimeoutError:
            pass

    async def run_iteration(self) -> Report:
        """Evaluate once, update metrics and history, and handle transitions."""
        with LogContext(service=self.service_name):
            report = await self._evaluate()
            self._iterations += 1
            self.metrics.increment_iteration()

            self._record_metrics(report)
            self._record_history(report)

            overall = report.overall_status
            previous = self._last_status
            self._last_status = overall
            if previous is not None and previous != overall:
                await self._on_transition(previous, overall, report)

            return report

    def _record_metrics(self, report: Report) -> None:
        for name, outcome in report.entries.items():
            self.metrics.set_status(self.service_name, name, outcome.status)
        self.metrics.set_status(self.service_name, "overall", report.overall_status)

    def _record_history(self, report: Report) -> None:
        if self.history is None:
            return

        for name, outcome in report.entries.items():
            # The analyzer's own verdict would feed back into its input
            if TAG_PREDICTIVE in outcome.tags:
                continue
            data = {"tags": sorted(outcome.tags)}
            if outcome.error_message:
                data["error"] = outcome.error_message
            self.history.append(HistoryEntry(
                component_name=name,
                status=outcome.status,
                timestamp=outcome.timestamp,
                duration_ms=outcome.duration_ms,
                data=data,
            ))

        self.history.cleanup(self.history_retention)

    async def _on_transition(self, old: HealthStatus, new: HealthStatus, report: Report) -> None:
        self._transitions += 1
        self.metrics.mark_change(self.service_name, time.time())
        logger.info(
            "Health state changed",
            service=self.service_name,
            old_status=old.label,
            new_status=new.label,
        )

        if self.publisher is not None:
            await self.publisher.publish(report)

    def get_status(self):
        """Current monitor state for diagnostics."""
        return {
            "state": self._state.value,
            "service": self.service_name,
            "last_status": self._last_status.label if self._last_status is not None else None,
            "iterations": self._iterations,
            "transitions": self._transitions,
        }
