"""
Core health model for healthwatch.

Contains:
- status: ordered HealthStatus, ProbeResult, ProbeOutcome, Report
- errors: exception taxonomy
- aggregation: live/ready/startup/details views
- registry: explicit probe registration and evaluation
- builder: fluent registration of built-in probes
"""

from healthwatch.core.status import (
    HealthStatus,
    ProbeResult,
    ProbeOutcome,
    Report,
)

from healthwatch.core.errors import (
    HealthwatchError,
    ProbeExecutionError,
    InsufficientHistoryError,
    AnalysisComputationError,
    PublishError,
    AlertDeliveryError,
)

__all__ = [
    # Status
    "HealthStatus",
    "ProbeResult",
    "ProbeOutcome",
    "Report",
    # Errors
    "HealthwatchError",
    "ProbeExecutionError",
    "InsufficientHistoryError",
    "AnalysisComputationError",
    "PublishError",
    "AlertDeliveryError",
]
