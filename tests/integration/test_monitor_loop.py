"""
Integration tests for the monitor loop.

Tests transition detection, metrics, history recording and shutdown
with mocked metrics and publisher.
"""

import asyncio
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

from healthwatch.core.status import HealthStatus, ProbeOutcome, Report
from healthwatch.monitoring.history import HistoryStore
from healthwatch.monitoring.monitor import MonitorLoop, MonitorState


def make_report(status: HealthStatus, predictive: HealthStatus = HealthStatus.HEALTHY) -> Report:
    return Report.from_outcomes(
        [
            ProbeOutcome("db", status, frozenset({"ready"})),
            ProbeOutcome("predictive-analysis", predictive, frozenset({"ml", "predictive", "ready"})),
        ],
        3.0,
        "orders",
    )


class SequenceEvaluator:
    """Returns the given reports in order, repeating the last one."""

    def __init__(self, *reports):
        self.reports = list(reports)
        self.calls = 0

    async def __call__(self) -> Report:
        report = self.reports[min(self.calls, len(self.reports) - 1)]
        self.calls += 1
        return report


@pytest.fixture
def mock_metrics():
    return MagicMock()


@pytest.fixture
def publisher():
    pub = MagicMock()
    pub.publish = AsyncMock(return_value=True)
    pub.close = AsyncMock()
    return pub


class TestTransitions:
    """Tests for change detection."""

    @pytest.mark.asyncio
    async def test_first_observation_is_baseline(self, mock_metrics, publisher):
        monitor = MonitorLoop(
            SequenceEvaluator(make_report(HealthStatus.UNHEALTHY)),
            service_name="orders",
            publisher=publisher,
            metrics=mock_metrics,
        )

        await monitor.run_iteration()

        mock_metrics.mark_change.assert_not_called()
        publisher.publish.assert_not_awaited()
        assert monitor.last_status == HealthStatus.UNHEALTHY

    @pytest.mark.asyncio
    async def test_one_change_per_transition(self, mock_metrics, publisher):
        evaluate = SequenceEvaluator(
            make_report(HealthStatus.HEALTHY),
            make_report(HealthStatus.UNHEALTHY),
            make_report(HealthStatus.UNHEALTHY),
        )
        monitor = MonitorLoop(evaluate, "orders", publisher=publisher, metrics=mock_metrics)

        with patch("healthwatch.monitoring.monitor.logger") as mock_logger:
            for _ in range(3):
                await monitor.run_iteration()

        mock_metrics.mark_change.assert_called_once()
        assert mock_metrics.mark_change.call_args[0][0] == "orders"
        publisher.publish.assert_awaited_once()

        changes = [c for c in mock_logger.info.call_args_list if c[0][0] == "Health state changed"]
        assert len(changes) == 1
        assert changes[0][1] == {
            "service": "orders",
            "old_status": "Healthy",
            "new_status": "Unhealthy",
        }
        assert monitor.get_status()["transitions"] == 1

    @pytest.mark.asyncio
    async def test_each_transition_reported(self, mock_metrics, publisher):
        evaluate = SequenceEvaluator(
            make_report(HealthStatus.HEALTHY),
            make_report(HealthStatus.DEGRADED),
            make_report(HealthStatus.HEALTHY),
        )
        monitor = MonitorLoop(evaluate, "orders", publisher=publisher, metrics=mock_metrics)

        for _ in range(3):
            await monitor.run_iteration()

        assert mock_metrics.mark_change.call_count == 2
        assert publisher.publish.await_count == 2

    @pytest.mark.asyncio
    async def test_publish_failure_does_not_break_iteration(self, mock_metrics):
        publisher = MagicMock()
        publisher.publish = AsyncMock(return_value=False)
        evaluate = SequenceEvaluator(
            make_report(HealthStatus.HEALTHY),
            make_report(HealthStatus.UNHEALTHY),
        )
        monitor = MonitorLoop(evaluate, "orders", publisher=publisher, metrics=mock_metrics)

        await monitor.run_iteration()
        await monitor.run_iteration()

        assert monitor.last_status == HealthStatus.UNHEALTHY


    @pytest.mark.asyncio
    async def test_publish_error_does_not_repeat_transition(self, mock_metrics):
        publisher = MagicMock()
        publisher.publish = AsyncMock(side_effect=RuntimeError("bus down"))
        evaluate = SequenceEvaluator(
            make_report(HealthStatus.HEALTHY),
            make_report(HealthStatus.UNHEALTHY),
            make_report(HealthStatus.UNHEALTHY),
        )
        monitor = MonitorLoop(evaluate, "orders", publisher=publisher, metrics=mock_metrics)

        await monitor.run_iteration()
        with pytest.raises(RuntimeError):
            await monitor.run_iteration()
        await monitor.run_iteration()

        assert monitor.last_status == HealthStatus.UNHEALTHY
        mock_metrics.mark_change.assert_called_once()
        publisher.publish.assert_awaited_once()


class TestMetricsAndHistory:

    @pytest.mark.asyncio
    async def test_gauges_per_entry_and_overall(self, mock_metrics):
        monitor = MonitorLoop(
            SequenceEvaluator(make_report(HealthStatus.DEGRADED)),
            "orders",
            metrics=mock_metrics,
        )

        await monitor.run_iteration()

        calls = {c[0][1]: c[0][2] for c in mock_metrics.set_status.call_args_list}
        assert calls == {
            "db": HealthStatus.DEGRADED,
            "predictive-analysis": HealthStatus.HEALTHY,
            "overall": HealthStatus.DEGRADED,
        }
        mock_metrics.increment_iteration.assert_called_once()

    @pytest.mark.asyncio
    async def test_history_excludes_predictive_outcome(self, mock_metrics):
        history = HistoryStore()
        monitor = MonitorLoop(
            SequenceEvaluator(make_report(HealthStatus.HEALTHY)),
            "orders",
            history=history,
            metrics=mock_metrics,
        )

        await monitor.run_iteration()
        await monitor.run_iteration()

        entries = history.query(timedelta(hours=1))
        assert len(entries) == 2
        assert {e.component_name for e in entries} == {"db"}

    @pytest.mark.asyncio
    async def test_cleanup_runs_with_retention(self, mock_metrics):
        history = MagicMock()
        monitor = MonitorLoop(
            SequenceEvaluator(make_report(HealthStatus.HEALTHY)),
            "orders",
            history=history,
            history_retention=timedelta(hours=6),
            metrics=mock_metrics,
        )

        await monitor.run_iteration()

        history.cleanup.assert_called_once_with(timedelta(hours=6))


class TestLifecycle:
    """Tests for start/stop and failure isolation."""

    @pytest.mark.asyncio
    async def test_stop_is_prompt_and_closes_publisher(self, mock_metrics, publisher):
        monitor = MonitorLoop(
            SequenceEvaluator(make_report(HealthStatus.HEALTHY)),
            "orders",
            publisher=publisher,
            interval_seconds=3600,
            metrics=mock_metrics,
        )

        await monitor.start()
        assert monitor.state == MonitorState.RUNNING
        await asyncio.sleep(0.05)

        await asyncio.wait_for(monitor.stop(), timeout=1.0)

        assert monitor.state == MonitorState.STOPPED
        publisher.close.assert_awaited_once()
        mock_metrics.increment_iteration.assert_called_once()

    @pytest.mark.asyncio
    async def test_iteration_errors_do_not_stop_loop(self, mock_metrics):
        calls = 0

        async def flaky() -> Report:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("evaluation failed")
            return make_report(HealthStatus.HEALTHY)

        monitor = MonitorLoop(flaky, "orders", interval_seconds=0.01, metrics=mock_metrics)

        with patch("healthwatch.monitoring.monitor.logger"):
            await monitor.start()
            await asyncio.sleep(0.2)
            await monitor.stop()

        assert calls >= 2
        assert monitor.last_status == HealthStatus.HEALTHY

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_task(self, mock_metrics):
        evaluate = SequenceEvaluator(make_report(HealthStatus.HEALTHY))
        monitor = MonitorLoop(evaluate, "orders", interval_seconds=3600, metrics=mock_metrics)

        await monitor.start()
        await monitor.start()
        await asyncio.sleep(0.05)
        await monitor.stop()

        assert evaluate.calls == 1

    @pytest.mark.asyncio
    async def test_restart_reopens_publisher(self, mock_metrics, publisher):
        monitor = MonitorLoop(
            SequenceEvaluator(make_report(HealthStatus.HEALTHY)),
            "orders",
            publisher=publisher,
            interval_seconds=3600,
            metrics=mock_metrics,
        )

        await monitor.start()
        await monitor.stop()
        await monitor.start()
        await monitor.stop()

        assert publisher.reopen.call_count == 2
        assert publisher.close.await_count == 2
