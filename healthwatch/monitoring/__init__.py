"""
Monitoring module for healthwatch.

Provides:
- history: bounded store of past probe outcomes
- alerts: alert retention and external delivery
- predictive: heuristic failure forecasting
- publisher: change notifications over Redis pub/sub
- monitor: periodic background evaluation loop
"""

from healthwatch.monitoring.history import (
    HistoryEntry,
    HistoryStats,
    HistoryStore,
)

from healthwatch.monitoring.alerts import (
    Alert,
    AlertType,
    AlertSeverity,
    AlertStats,
    AlertSink,
    WebhookChannel,
    SlackChannel,
    TelegramChannel,
)

from healthwatch.monitoring.predictive import (
    Trend,
    Prediction,
    PredictiveAnalyzer,
)

from healthwatch.monitoring.publisher import (
    ChangePublisher,
    build_change_message,
)

from healthwatch.monitoring.monitor import (
    MonitorState,
    MonitorLoop,
)

__all__ = [
    # History
    "HistoryEntry",
    "HistoryStats",
    "HistoryStore",
    # Alerts
    "Alert",
    "AlertType",
    "AlertSeverity",
    "AlertStats",
    "AlertSink",
    "WebhookChannel",
    "SlackChannel",
    "TelegramChannel",
    # Prediction
    "Trend",
    "Prediction",
    "PredictiveAnalyzer",
    # Publishing
    "ChangePublisher",
    "build_change_message",
    # Loop
    "MonitorState",
    "MonitorLoop",
]
