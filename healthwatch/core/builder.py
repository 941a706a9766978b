"""
Fluent registration of the built-in probes.

Each add_* method registers one probe with the tags that decide which
health views it participates in.

Usage:
    registry = (
        HealthCheckBuilder("orders")
        .add_startup_gate(signal)
        .add_http_dependency("payments", "http://payments/health/ready")
        .add_working_set(max_mb=512)
        .build()
    )
"""

from __future__ import annotations
from typing import Iterable, Optional

from healthwatch.core.aggregation import (
    TAG_CRITICAL,
    TAG_CUSTOM,
    TAG_EXTERNAL,
    TAG_INFRA,
    TAG_LIVE,
    TAG_ML,
    TAG_NONCRITICAL,
    TAG_PREDICTIVE,
    TAG_READY,
    TAG_STARTUP,
)
from healthwatch.core.registry import Probe, ProbeRegistry
from healthwatch.core.status import HealthStatus
from healthwatch.infrastructure.config import AppConfig
from healthwatch.infrastructure.logging import get_logger
from healthwatch.probes.http import HttpDependencyProbe
from healthwatch.probes.startup import StartupGateProbe, StartupSignal
from healthwatch.probes.system import DiskSpaceProbe, WorkingSetProbe

logger = get_logger(__name__)

STARTUP_PROBE_NAME = "startup"
WORKING_SET_PROBE_NAME = "working-set"
DISK_SPACE_PROBE_NAME = "disk-space"
PREDICTIVE_PROBE_NAME = "predictive-analysis"


class HealthCheckBuilder:
    """Builds a ProbeRegistry one probe at a time."""

    def __init__(self, service_name: str = "Service", registry: Optional[ProbeRegistry] = None):
        self.registry = registry or ProbeRegistry(service_name)

    def add_probe(
        self,
        name: str,
        probe: Probe,
        tags: Iterable[str] = (TAG_CUSTOM,),
        failure_status: HealthStatus = HealthStatus.UNHEALTHY,
        timeout_seconds: Optional[float] = None,
    ) -> "HealthCheckBuilder":
        self.registry.register(name, probe, tags, failure_status, timeout_seconds)
        return self

    def add_http_dependency(
        self,
        name: str,
        url: str,
        critical: bool = True,
        timeout_seconds: float = 2.0,
    ) -> "HealthCheckBuilder":
        """
        Register an HTTP peer.

        Critical peers gate readiness. Non-critical peers only show up in
        details and report Degraded when down.
        """
        if critical:
            tags = {TAG_EXTERNAL, TAG_CRITICAL, TAG_READY}
            failure_status = HealthStatus.UNHEALTHY
        else:
            tags = {TAG_EXTERNAL, TAG_NONCRITICAL}
            failure_status = HealthStatus.DEGRADED

        probe = HttpDependencyProbe(url, timeout_seconds, failure_status)
        return self.add_probe(name, probe, tags, failure_status)

    def add_startup_gate(self, signal: StartupSignal) -> "HealthCheckBuilder":
        return self.add_probe(STARTUP_PROBE_NAME, StartupGateProbe(signal), {TAG_STARTUP})

    def add_working_set(self, max_mb: float) -> "HealthCheckBuilder":
        return self.add_probe(
            WORKING_SET_PROBE_NAME,
            WorkingSetProbe(max_mb),
            {TAG_INFRA, TAG_LIVE},
            HealthStatus.DEGRADED,
        )

    def add_disk_space(self, min_free_mb: float, path: str = "/") -> "HealthCheckBuilder":
        return self.add_probe(
            DISK_SPACE_PROBE_NAME,
            DiskSpaceProbe(min_free_mb, path),
            {TAG_INFRA},
        )

    def add_predictive_analysis(self, analyzer: Probe) -> "HealthCheckBuilder":
        return self.add_probe(
            PREDICTIVE_PROBE_NAME,
            analyzer,
            {TAG_ML, TAG_PREDICTIVE, TAG_READY},
        )

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        startup_signal: Optional[StartupSignal] = None,
        analyzer: Optional[Probe] = None,
    ) -> "HealthCheckBuilder":
        """Register every built-in probe the configuration asks for."""
        builder = cls(config.service.name)

        if config.service.enable_startup_probe and startup_signal is not None:
            builder.add_startup_gate(startup_signal)

        for dep in config.dependencies.http:
            builder.add_http_dependency(dep.name, dep.url, dep.critical, dep.timeout_seconds)

        if config.dependencies.working_set_max_mb is not None:
            builder.add_working_set(config.dependencies.working_set_max_mb)

        if config.dependencies.disk_min_free_mb is not None:
            builder.add_disk_space(
                config.dependencies.disk_min_free_mb, config.dependencies.disk_path
            )

        if config.predictive.enabled and analyzer is not None:
            builder.add_predictive_analysis(analyzer)

        logger.info(
            "Health checks configured",
            service=config.service.name,
            probes=[r.name for r in builder.registry.registrations],
        )
        return builder

    def build(self) -> ProbeRegistry:
        return self.registry
