"""
Prometheus metrics for observability.

Exposes metrics on /metrics endpoint for Prometheus scraping.

Metrics Categories:
- Status: per-check and overall health, last transition time
- Probes: evaluation latency
- Alerts: generated alerts, channel delivery failures
- Prediction: failure probability per component
"""

import time

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from healthwatch.core.status import HealthStatus
from healthwatch.infrastructure.logging import get_logger

logger = get_logger(__name__)


# =============================================================================
# Status Metrics
# =============================================================================

HEALTH_STATUS = Gauge(
    "health_status",
    "Health status per service and check: 1 Healthy, 0 Degraded, -1 Unhealthy",
    ["service", "check"],
)

HEALTH_LAST_CHANGE = Gauge(
    "health_last_change_timestamp_seconds",
    "Unix timestamp of last health state change",
    ["service"],
)

MONITOR_ITERATIONS = Counter(
    "health_monitor_iterations_total",
    "Total monitor loop iterations",
)

# =============================================================================
# Probe Metrics
# =============================================================================

PROBE_DURATION = Histogram(
    "health_probe_duration_seconds",
    "Probe evaluation latency",
    ["check"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

# =============================================================================
# Alert Metrics
# =============================================================================

ALERTS_TOTAL = Counter(
    "health_alerts_total",
    "Total alerts recorded",
    ["type", "severity"],
)

ALERT_DELIVERY_FAILURES = Counter(
    "health_alert_delivery_failures_total",
    "Alert deliveries that failed per channel",
    ["channel"],
)

PUBLISH_FAILURES = Counter(
    "health_publish_failures_total",
    "Change notifications that could not be published",
)

# =============================================================================
# Prediction Metrics
# =============================================================================

FAILURE_PROBABILITY = Gauge(
    "health_failure_probability",
    "Predicted near-term failure probability per component",
    ["component"],
)


class MetricsCollector:
    """
    Collects and exposes Prometheus metrics.

    Usage:
        collector = MetricsCollector()
        collector.start_server(port=9090)

        collector.set_status("orders", "postgres", HealthStatus.HEALTHY)
        collector.mark_change("orders")
    """

    def start_server(self, port: int = 9090) -> None:
        """Start the Prometheus metrics HTTP server."""
        try:
            start_http_server(port)
            logger.info("Metrics server started", port=port)
        except Exception as e:
            logger.error("Failed to start metrics server", error=str(e))

    def set_status(self, service: str, check: str, status: HealthStatus) -> None:
        """Set the status gauge for one check (or "overall")."""
        HEALTH_STATUS.labels(service=service, check=check).set(status.gauge_value)

    def mark_change(self, service: str, timestamp: float | None = None) -> None:
        """Record the time of a health state transition."""
        HEALTH_LAST_CHANGE.labels(service=service).set(timestamp or time.time())

    def record_probe_duration(self, check: str, duration_ms: float) -> None:
        PROBE_DURATION.labels(check=check).observe(duration_ms / 1000.0)

    def record_alert(self, alert_type: str, severity: str) -> None:
        ALERTS_TOTAL.labels(type=alert_type, severity=severity).inc()

    def record_delivery_failure(self, channel: str) -> None:
        ALERT_DELIVERY_FAILURES.labels(channel=channel).inc()

    def record_publish_failure(self) -> None:
        PUBLISH_FAILURES.inc()

    def update_prediction(self, component: str, probability: float) -> None:
        FAILURE_PROBABILITY.labels(component=component).set(probability)

    def increment_iteration(self) -> None:
        MONITOR_ITERATIONS.inc()


# Pre-instantiated collector
metrics = MetricsCollector()
