"""
Probe Registry for healthwatch.

Explicit, typed registration of probes:
- Each probe registers with its name, tags, failure status and timeout
- Evaluation fans out to all matching probes concurrently
- A probe that raises or times out becomes an outcome, never an exception

Usage:
    registry = ProbeRegistry("orders")
    registry.register("postgres", PostgresProbe(dsn), tags={"infra", "critical", "ready"})
    report = await registry.evaluate()
"""

from __future__ import annotations
import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Protocol

from healthwatch.core.errors import ProbeExecutionError
from healthwatch.core.status import HealthStatus, ProbeOutcome, ProbeResult, Report
from healthwatch.infrastructure.logging import get_logger
from healthwatch.infrastructure.metrics import metrics

logger = get_logger(__name__)


class Probe(Protocol):
    """A single independent check of one dependency or resource."""

    async def check(self) -> ProbeResult:
        ...


TagPredicate = Callable[[FrozenSet[str]], bool]


@dataclass(frozen=True)
class ProbeRegistration:
    """A registered probe and how its outcome is stamped."""
    name: str
    probe: Probe
    tags: FrozenSet[str]
    failure_status: HealthStatus = HealthStatus.UNHEALTHY
    timeout_seconds: Optional[float] = None


class ProbeRegistry:
    """
    Registry of probes for one service.

    Evaluation runs probes concurrently; ordering of entries in the
    resulting report follows registration order.
    """

    def __init__(self, service_name: str = "Service"):
        self.service_name = service_name
        self._registrations: Dict[str, ProbeRegistration] = {}

    def register(
        self,
        name: str,
        probe: Probe,
        tags: Iterable[str] = (),
        failure_status: HealthStatus = HealthStatus.UNHEALTHY,
        timeout_seconds: Optional[float] = None,
    ) -> "ProbeRegistry":
        """Register a probe. Names must be unique."""
        if name in self._registrations:
            raise ValueError(f"Probe already registered: {name}")

        registration = ProbeRegistration(
            name=name,
            probe=probe,
            tags=frozenset(tags),
            failure_status=failure_status,
            timeout_seconds=timeout_seconds,
        )
        self._registrations[name] = registration
        logger.debug("Probe registered", probe=name, tags=sorted(registration.tags))
        return self

    @property
    def registrations(self) -> List[ProbeRegistration]:
        return list(self._registrations.values())

    def __contains__(self, name: str) -> bool:
        return name in self._registrations

    def __len__(self) -> int:
        return len(self._registrations)

    async def evaluate(self, predicate: Optional[TagPredicate] = None) -> Report:
        """Run every probe matching the predicate and build a report."""
        selected = [
            r for r in self._registrations.values()
            if predicate is None or predicate(r.tags)
        ]

        started = time.perf_counter()
        outcomes = await asyncio.gather(*(self._run(r) for r in selected))
        total_ms = (time.perf_counter() - started) * 1000

        return Report.from_outcomes(outcomes, total_ms, self.service_name)

    async def _run(self, registration: ProbeRegistration) -> ProbeOutcome:
        """Run one probe, containing any failure in its outcome."""
        started = time.perf_counter()
        try:
            if registration.timeout_seconds:
                result = await asyncio.wait_for(
                    registration.probe.check(), timeout=registration.timeout_seconds
                )
            else:
                result = await registration.probe.check()
        except asyncio.TimeoutError:
            error = ProbeExecutionError(
                registration.name,
                f"timed out after {registration.timeout_seconds}s",
            )
            result = ProbeResult(registration.failure_status, error.message, error=error)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = ProbeExecutionError(registration.name, str(e) or type(e).__name__)
            error.__cause__ = e
            result = ProbeResult(registration.failure_status, error.message, error=error)

        duration_ms = (time.perf_counter() - started) * 1000
        metrics.record_probe_duration(registration.name, duration_ms)

        if result.error is not None:
            logger.warning(
                "Probe failed",
                probe=registration.name,
                status=result.status.label,
                error=str(result.error),
            )

        return ProbeOutcome(
            name=registration.name,
            status=result.status,
            tags=registration.tags,
            duration_ms=duration_ms,
            error_message=_error_message(result),
            description=result.description,
            data=dict(result.data),
        )


def _error_message(result: ProbeResult) -> Optional[str]:
    if result.error is None:
        return None
    if isinstance(result.error, ProbeExecutionError):
        return result.error.message
    return str(result.error) or type(result.error).__name__
