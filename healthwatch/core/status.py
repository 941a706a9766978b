"""
Health status model.

Defines the ordered tri-state status and the immutable shapes that flow
from probes into aggregation and monitoring:
- HealthStatus: Healthy < Degraded < Unhealthy, worst-of aggregation
- ProbeResult: what a probe returns
- ProbeOutcome: a probe result stamped with name, tags, timing
- Report: one evaluation of a set of probes
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional


class HealthStatus(IntEnum):
    """Component health status, ordered from best to worst."""
    HEALTHY = 0
    DEGRADED = 1
    UNHEALTHY = 2

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @property
    def gauge_value(self) -> int:
        return _GAUGE_VALUES[self]

    @classmethod
    def worst_of(cls, statuses: Iterable["HealthStatus"]) -> "HealthStatus":
        """Worst status in the collection; Healthy when empty."""
        return max(statuses, default=cls.HEALTHY)

    @classmethod
    def parse(cls, value: str) -> "HealthStatus":
        return cls[value.upper()]


_GAUGE_VALUES = {
    HealthStatus.HEALTHY: 1,
    HealthStatus.DEGRADED: 0,
    HealthStatus.UNHEALTHY: -1,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ProbeResult:
    """Result returned by a single probe."""
    status: HealthStatus
    description: str = ""
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[BaseException] = None

    @classmethod
    def healthy(cls, description: str = "", data: Optional[Dict[str, Any]] = None) -> "ProbeResult":
        return cls(HealthStatus.HEALTHY, description, data or {})

    @classmethod
    def degraded(cls, description: str = "", data: Optional[Dict[str, Any]] = None) -> "ProbeResult":
        return cls(HealthStatus.DEGRADED, description, data or {})

    @classmethod
    def unhealthy(
        cls,
        description: str = "",
        data: Optional[Dict[str, Any]] = None,
        error: Optional[BaseException] = None,
    ) -> "ProbeResult":
        return cls(HealthStatus.UNHEALTHY, description, data or {}, error)


@dataclass(frozen=True)
class ProbeOutcome:
    """Outcome of one probe in one evaluation cycle."""
    name: str
    status: HealthStatus
    tags: FrozenSet[str] = frozenset()
    duration_ms: float = 0.0
    error_message: Optional[str] = None
    description: str = ""
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.label,
            "tags": sorted(self.tags),
            "durationMs": int(self.duration_ms),
            "error": self.error_message or self.description or None,
        }


@dataclass(frozen=True)
class Report:
    """A complete evaluation of a set of probes."""
    overall_status: HealthStatus
    entries: Mapping[str, ProbeOutcome]
    total_duration_ms: float
    service_name: str

    @classmethod
    def from_outcomes(
        cls,
        outcomes: Iterable[ProbeOutcome],
        total_duration_ms: float,
        service_name: str,
    ) -> "Report":
        entries = {o.name: o for o in outcomes}
        return cls(
            overall_status=HealthStatus.worst_of(o.status for o in entries.values()),
            entries=entries,
            total_duration_ms=total_duration_ms,
            service_name=service_name,
        )
