"""Tests for the status model and the tag-based aggregation policy."""

import pytest

from healthwatch.core.aggregation import (
    AggregationPolicy,
    TAG_CRITICAL,
    TAG_EXTERNAL,
    TAG_INFRA,
    TAG_READY,
    TAG_STARTUP,
    is_ready_probe,
    is_startup_probe,
)
from healthwatch.core.status import HealthStatus, ProbeOutcome, Report


def outcome(name: str, status: HealthStatus, *tags: str) -> ProbeOutcome:
    return ProbeOutcome(name=name, status=status, tags=frozenset(tags))


def report(*outcomes: ProbeOutcome) -> Report:
    return Report.from_outcomes(outcomes, 12.0, "orders")


class TestHealthStatus:
    """Tests for HealthStatus ordering and labels."""

    def test_total_order(self):
        assert HealthStatus.HEALTHY < HealthStatus.DEGRADED < HealthStatus.UNHEALTHY

    def test_worst_of(self):
        statuses = [HealthStatus.HEALTHY, HealthStatus.UNHEALTHY, HealthStatus.DEGRADED]
        assert HealthStatus.worst_of(statuses) == HealthStatus.UNHEALTHY

    def test_worst_of_empty_is_healthy(self):
        assert HealthStatus.worst_of([]) == HealthStatus.HEALTHY

    @pytest.mark.parametrize("status,label,gauge", [
        (HealthStatus.HEALTHY, "Healthy", 1),
        (HealthStatus.DEGRADED, "Degraded", 0),
        (HealthStatus.UNHEALTHY, "Unhealthy", -1),
    ])
    def test_label_and_gauge(self, status, label, gauge):
        assert status.label == label
        assert status.gauge_value == gauge
        assert HealthStatus.parse(label) == status


class TestReport:

    def test_overall_is_worst_entry(self):
        r = report(
            outcome("a", HealthStatus.HEALTHY),
            outcome("b", HealthStatus.DEGRADED),
        )
        assert r.overall_status == HealthStatus.DEGRADED
        assert list(r.entries) == ["a", "b"]
        assert r.service_name == "orders"

    def test_outcome_to_dict(self):
        o = ProbeOutcome(
            name="db",
            status=HealthStatus.UNHEALTHY,
            tags=frozenset({TAG_READY, TAG_INFRA}),
            duration_ms=12.7,
            error_message="connection refused",
        )
        assert o.to_dict() == {
            "name": "db",
            "status": "Unhealthy",
            "tags": ["infra", "ready"],
            "durationMs": 12,
            "error": "connection refused",
        }


class TestAggregationPolicy:
    """Tests for the live/ready/startup/details views."""

    def setup_method(self):
        self.policy = AggregationPolicy()

    def test_live_ignores_everything(self):
        assert self.policy.live() == HealthStatus.HEALTHY

    def test_ready_uses_ready_and_critical_tags(self):
        r = report(
            outcome("db", HealthStatus.UNHEALTHY, TAG_READY, TAG_INFRA),
            outcome("cache", HealthStatus.HEALTHY, TAG_INFRA),
        )
        ready = self.policy.ready(r)
        assert ready.overall_status == HealthStatus.UNHEALTHY
        assert list(ready.entries) == ["db"]

        details = self.policy.details(r)
        assert details.overall_status == HealthStatus.UNHEALTHY

    def test_ready_degraded(self):
        r = report(
            outcome("db", HealthStatus.HEALTHY, TAG_READY),
            outcome("payments", HealthStatus.DEGRADED, TAG_CRITICAL, TAG_EXTERNAL),
        )
        assert self.policy.ready(r).overall_status == HealthStatus.DEGRADED

    def test_untagged_outcome_only_in_details(self):
        r = report(outcome("cache", HealthStatus.UNHEALTHY, TAG_INFRA))

        assert self.policy.ready(r).overall_status == HealthStatus.HEALTHY
        assert self.policy.startup(r).overall_status == HealthStatus.HEALTHY
        assert self.policy.details(r).overall_status == HealthStatus.UNHEALTHY
        assert "cache" in self.policy.details(r).entries

    def test_ready_and_critical_counted_once(self):
        r = report(outcome("db", HealthStatus.DEGRADED, TAG_READY, TAG_CRITICAL))
        assert len(self.policy.ready(r).entries) == 1

    def test_startup_view(self):
        r = report(
            outcome("startup", HealthStatus.UNHEALTHY, TAG_STARTUP),
            outcome("db", HealthStatus.HEALTHY, TAG_READY),
        )
        startup = self.policy.startup(r)
        assert startup.overall_status == HealthStatus.UNHEALTHY
        assert list(startup.entries) == ["startup"]
        assert self.policy.ready(r).overall_status == HealthStatus.HEALTHY

    def test_empty_views_are_healthy(self):
        r = report()
        assert self.policy.ready(r).overall_status == HealthStatus.HEALTHY
        assert self.policy.startup(r).overall_status == HealthStatus.HEALTHY
        assert self.policy.details(r).overall_status == HealthStatus.HEALTHY


class TestPredicates:

    def test_is_ready_probe(self):
        assert is_ready_probe(frozenset({TAG_READY}))
        assert is_ready_probe(frozenset({TAG_CRITICAL}))
        assert not is_ready_probe(frozenset({TAG_INFRA}))

    def test_is_startup_probe(self):
        assert is_startup_probe(frozenset({TAG_STARTUP}))
        assert not is_startup_probe(frozenset())
