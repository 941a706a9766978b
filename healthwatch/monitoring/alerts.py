"""
Alert Sink for healthwatch.

Best-effort alerting with:
- Bounded retention of the last 100 alerts
- Severity-based log level
- Webhook, Slack and Telegram delivery
- Optional auto-remediation hook for critical, high-severity alerts

Alerts are retained before any delivery is attempted; a failing channel
never discards the alert or stops the remaining channels.

Usage:
    sink = AlertSink(channels=[WebhookChannel(url)], enable_external_channels=True)
    await sink.send(Alert(
        type=AlertType.CRITICAL,
        component="postgres",
        message="Predicted failure",
        severity=AlertSeverity.HIGH,
    ))
"""

from __future__ import annotations
import json
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from threading import Lock
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Protocol

import aiohttp

from healthwatch.core.errors import AlertDeliveryError
from healthwatch.core.status import utcnow
from healthwatch.infrastructure.logging import get_logger
from healthwatch.infrastructure.metrics import metrics

logger = get_logger(__name__)

DEFAULT_RETENTION = 100


class AlertType(Enum):
    """Alert types."""
    INFO = "Info"
    WARNING = "Warning"
    CRITICAL = "Critical"


class AlertSeverity(Enum):
    """Alert severity levels."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


@dataclass(eq=False)
class Alert:
    """An alert about one component."""
    type: AlertType
    component: str
    message: str
    severity: AlertSeverity
    timestamp: datetime = field(default_factory=utcnow)
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "component": self.component,
            "message": self.message,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }

    def summary(self) -> str:
        return f"[{self.type.value}] {self.severity.value}: {self.message} | Component: {self.component}"

    def to_slack_message(self) -> Dict[str, Any]:
        """Format for a Slack incoming webhook."""
        emoji = {
            AlertSeverity.LOW: ":information_source:",
            AlertSeverity.MEDIUM: ":warning:",
            AlertSeverity.HIGH: ":rotating_light:",
        }.get(self.severity, ":bell:")

        lines = [f"{emoji} *{self.type.value.upper()}* `{self.component}`", self.message]
        if self.data:
            lines.append("```")
            lines.extend(f"{k}: {v}" for k, v in self.data.items())
            lines.append("```")
        return {"text": "\n".join(lines)}

    def to_telegram_message(self) -> str:
        """Format for Telegram (Markdown)."""
        lines = [
            f"*{self.type.value.upper()}* ({self.severity.value}): {self.component}",
            "",
            self.message,
        ]
        lines.append(f"\n_Time: {self.timestamp.strftime('%Y-%m-%d %H:%M:%S')} UTC_")
        return "\n".join(lines)


@dataclass
class AlertStats:
    """Statistics over retained alerts."""
    total_alerts: int
    alerts_last_24_hours: int
    alerts_last_7_days: int
    critical_alerts: int
    high_severity_alerts: int
    components_with_alerts: int
    last_alert_time: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_alerts": self.total_alerts,
            "alerts_last_24_hours": self.alerts_last_24_hours,
            "alerts_last_7_days": self.alerts_last_7_days,
            "critical_alerts": self.critical_alerts,
            "high_severity_alerts": self.high_severity_alerts,
            "components_with_alerts": self.components_with_alerts,
            "last_alert_time": self.last_alert_time.isoformat() if self.last_alert_time else None,
        }


class AlertChannel(Protocol):
    """An external alert destination. Raises AlertDeliveryError on failure."""

    name: str

    async def send(self, alert: Alert) -> None:
        ...


RemediationHook = Callable[[Alert], Awaitable[None]]


class _HttpChannel:
    """Shared aiohttp session handling for HTTP-based channels."""

    name = "http"

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self._session = session

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _post(self, url: str, payload: Dict[str, Any], ok: tuple = (200, 201, 202, 204)) -> None:
        session = await self._get_session()
        try:
            async with session.post(url, json=payload) as resp:
                if resp.status not in ok:
                    raise AlertDeliveryError(self.name, f"HTTP {resp.status}")
        except aiohttp.ClientError as e:
            raise AlertDeliveryError(self.name, str(e)) from e

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()


class WebhookChannel(_HttpChannel):
    """POSTs the alert as JSON to a generic webhook."""

    name = "webhook"

    def __init__(self, url: str, session: Optional[aiohttp.ClientSession] = None):
        super().__init__(session)
        self.url = url

    async def send(self, alert: Alert) -> None:
        await self._post(self.url, alert.to_dict())


class SlackChannel(_HttpChannel):
    """Slack incoming webhook."""

    name = "slack"

    def __init__(self, webhook_url: str, session: Optional[aiohttp.ClientSession] = None):
        super().__init__(session)
        self.webhook_url = webhook_url

    async def send(self, alert: Alert) -> None:
        await self._post(self.webhook_url, alert.to_slack_message(), ok=(200,))


class TelegramChannel(_HttpChannel):
    """Telegram bot sendMessage."""

    name = "telegram"

    def __init__(self, bot_token: str, chat_id: str, session: Optional[aiohttp.ClientSession] = None):
        super().__init__(session)
        self._bot_token = bot_token
        self._chat_id = chat_id

    async def send(self, alert: Alert) -> None:
        url = f"https://api.telegram.org/bot{self._bot_token}/sendMessage"
        await self._post(url, {
            "chat_id": self._chat_id,
            "text": alert.to_telegram_message(),
            "parse_mode": "Markdown",
        }, ok=(200,))


class AlertSink:
    """
    Records alerts and forwards them to external channels.

    send() never raises: retention happens first, then logging, then
    per-channel delivery and the remediation hook, each isolated.
    """

    def __init__(
        self,
        channels: Optional[List[AlertChannel]] = None,
        enable_external_channels: bool = False,
        enable_auto_actions: bool = False,
        remediation_hook: Optional[RemediationHook] = None,
        retention: int = DEFAULT_RETENTION,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.channels: List[AlertChannel] = list(channels or [])
        self.enable_external_channels = enable_external_channels
        self.enable_auto_actions = enable_auto_actions
        self.remediation_hook = remediation_hook
        self._clock = clock
        self._alerts: Deque[Alert] = deque(maxlen=retention)
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._alerts)

    async def send(self, alert: Alert) -> None:
        """Retain, log and deliver an alert."""
        with self._lock:
            self._alerts.append(alert)

        metrics.record_alert(alert.type.value, alert.severity.value)
        self._log_alert(alert)

        if self.enable_external_channels:
            await self._deliver(alert)

        if (
            self.enable_auto_actions
            and self.remediation_hook is not None
            and alert.type == AlertType.CRITICAL
            and alert.severity == AlertSeverity.HIGH
        ):
            await self._remediate(alert)

    def _log_alert(self, alert: Alert) -> None:
        """Log at a level derived from severity."""
        log_method = {
            AlertSeverity.LOW: logger.info,
            AlertSeverity.MEDIUM: logger.warning,
            AlertSeverity.HIGH: logger.error,
        }.get(alert.severity, logger.info)

        log_method(
            f"[ALERT] {alert.summary()}",
            component=alert.component,
            alert_type=alert.type.value,
            severity=alert.severity.value,
            data=json.dumps(alert.data, default=str) if alert.data else None,
        )

    async def _deliver(self, alert: Alert) -> None:
        for channel in self.channels:
            try:
                await channel.send(alert)
            except Exception as e:
                metrics.record_delivery_failure(channel.name)
                logger.warning(
                    "Alert delivery failed",
                    channel=channel.name,
                    component=alert.component,
                    error=str(e),
                )

    async def _remediate(self, alert: Alert) -> None:
        logger.info("Running automatic remediation", component=alert.component)
        try:
            await self.remediation_hook(alert)
        except Exception as e:
            logger.warning(
                "Automatic remediation failed",
                component=alert.component,
                error=str(e),
            )

    def recent(self, period: timedelta) -> List[Alert]:
        """Alerts with timestamp >= now - period, newest first."""
        cutoff = self._clock() - period
        with self._lock:
            result = [a for a in self._alerts if a.timestamp >= cutoff]

        result.sort(key=lambda a: a.timestamp, reverse=True)
        return result

    def stats(self) -> AlertStats:
        now = self._clock()
        last_24h = now - timedelta(hours=24)
        last_7d = now - timedelta(days=7)

        with self._lock:
            alerts = list(self._alerts)

        return AlertStats(
            total_alerts=len(alerts),
            alerts_last_24_hours=sum(1 for a in alerts if a.timestamp >= last_24h),
            alerts_last_7_days=sum(1 for a in alerts if a.timestamp >= last_7d),
            critical_alerts=sum(1 for a in alerts if a.type == AlertType.CRITICAL),
            high_severity_alerts=sum(1 for a in alerts if a.severity == AlertSeverity.HIGH),
            components_with_alerts=len({a.component for a in alerts}),
            last_alert_time=max((a.timestamp for a in alerts), default=None),
        )

    async def close(self) -> None:
        """Close channel HTTP sessions."""
        for channel in self.channels:
            close = getattr(channel, "close", None)
            if close is not None:
                try:
                    await close()
                except Exception as e:
                    logger.warning("Failed to close alert channel", channel=channel.name, error=str(e))
