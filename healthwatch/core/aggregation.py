"""
Aggregation policy: derive the live/ready/startup/details views.

Tags on each outcome decide which views it participates in:
- live: never depends on any outcome
- ready: outcomes tagged "ready" or "critical"
- startup: outcomes tagged "startup"
- details: every outcome

Every view uses worst-of ordering (Unhealthy > Degraded > Healthy) and an
empty view is Healthy.
"""

from __future__ import annotations
from typing import FrozenSet, Iterable

from healthwatch.core.status import HealthStatus, ProbeOutcome, Report

TAG_LIVE = "live"
TAG_READY = "ready"
TAG_STARTUP = "startup"
TAG_CRITICAL = "critical"
TAG_NONCRITICAL = "noncritical"
TAG_INFRA = "infra"
TAG_EXTERNAL = "external"
TAG_CUSTOM = "custom"
TAG_ML = "ml"
TAG_PREDICTIVE = "predictive"

READY_TAGS = frozenset({TAG_READY, TAG_CRITICAL})
STARTUP_TAGS = frozenset({TAG_STARTUP})


def is_ready_probe(tags: FrozenSet[str]) -> bool:
    return not READY_TAGS.isdisjoint(tags)


def is_startup_probe(tags: FrozenSet[str]) -> bool:
    return not STARTUP_TAGS.isdisjoint(tags)


class AggregationPolicy:
    """Tag-based combination of probe outcomes into health views."""

    def live(self) -> HealthStatus:
        return HealthStatus.HEALTHY

    def ready(self, report: Report) -> Report:
        return self._filter(report, report.entries.values(), is_ready_probe)

    def startup(self, report: Report) -> Report:
        return self._filter(report, report.entries.values(), is_startup_probe)

    def details(self, report: Report) -> Report:
        return Report.from_outcomes(
            report.entries.values(), report.total_duration_ms, report.service_name
        )

    @staticmethod
    def _filter(report: Report, outcomes: Iterable[ProbeOutcome], predicate) -> Report:
        return Report.from_outcomes(
            (o for o in outcomes if predicate(o.tags)),
            report.total_duration_ms,
            report.service_name,
        )
