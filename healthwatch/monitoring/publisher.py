"""
Change Publisher for healthwatch.

Best-effort publication of health state transitions to a Redis pub/sub
channel:
- Lazily connects on first publish
- Checks liveness before each publish and reconnects when the client died
- Swallows and logs every failure, including calls after close()

Usage:
    publisher = ChangePublisher("redis://localhost:6379/0", channel="platform.health")
    await publisher.publish(report)
    await publisher.close()
"""

from __future__ import annotations
import json
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from healthwatch.core.errors import PublishError
from healthwatch.core.status import Report, utcnow
from healthwatch.infrastructure.logging import get_logger
from healthwatch.infrastructure.metrics import metrics

logger = get_logger(__name__)


def build_change_message(report: Report, timestamp: Optional[datetime] = None) -> Dict[str, Any]:
    """Change-notification payload for a report."""
    entries = []
    for name, outcome in report.entries.items():
        entry: Dict[str, Any] = {"name": name, "status": outcome.status.label}
        error = outcome.error_message or outcome.description
        if error:
            entry["error"] = error
        entries.append(entry)

    return {
        "service": report.service_name,
        "status": report.overall_status.label,
        "timestamp": (timestamp or utcnow()).isoformat(),
        "entries": entries,
    }


class ChangePublisher:
    """
    Publishes change notifications to a Redis channel.

    The client is a scoped resource: ensure_open() is called right before
    each publish and close() disposes it on shutdown.
    """

    def __init__(
        self,
        redis_url: Optional[str],
        channel: str = "platform.health",
        enabled: bool = True,
        client_factory: Optional[Callable[[str], aioredis.Redis]] = None,
    ):
        self.redis_url = redis_url
        self.channel = channel
        self.enabled = enabled and bool(redis_url)
        self._client_factory = client_factory or aioredis.from_url
        self._client: Optional[aioredis.Redis] = None
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def ensure_open(self) -> aioredis.Redis:
        """Return a live client, reconnecting if the current one is gone."""
        if self._closed:
            raise PublishError("publisher is closed")

        if self._client is not None:
            try:
                await self._client.ping()
                return self._client
            except (RedisError, OSError) as e:
                logger.info("Message bus connection lost, reconnecting", error=str(e))
                await self._dispose()

        try:
            client = self._client_factory(self.redis_url)
            await client.ping()
        except (RedisError, OSError) as e:
            raise PublishError(f"cannot connect to message bus: {e}") from e

        self._client = client
        return client

    async def publish(self, report: Report) -> bool:
        """Publish a report. Returns True when the message was handed to the bus."""
        if not self.enabled:
            return False

        try:
            client = await self.ensure_open()
            payload = json.dumps(build_change_message(report))
            await client.publish(self.channel, payload)
            return True
        except Exception as e:
            metrics.record_publish_failure()
            logger.warning(
                "Failed to publish health state",
                channel=self.channel,
                error=str(e),
            )
            return False

    async def _dispose(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.aclose()
        except (RedisError, OSError) as e:
            logger.warning("Error closing message bus connection", error=str(e))

    def reopen(self) -> None:
        """Allow publishing again after close(). The client reconnects lazily."""
        self._closed = False

    async def close(self) -> None:
        """Dispose the connection. Later publishes are logged and dropped."""
        self._closed = True
        await self._dispose()
