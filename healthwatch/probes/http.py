"""HTTP dependency probe: a GET against a peer's health URL."""

from __future__ import annotations
import asyncio
from typing import Optional

import aiohttp

from healthwatch.core.status import HealthStatus, ProbeResult
from healthwatch.infrastructure.logging import get_logger

logger = get_logger(__name__)


class HttpDependencyProbe:
    """
    Probe an HTTP peer.

    Any 2xx response is Healthy. Other statuses and connection errors
    report failure_status (Degraded for non-critical peers).
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 2.0,
        failure_status: HealthStatus = HealthStatus.UNHEALTHY,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.url = url
        self.timeout_seconds = max(1.0, timeout_seconds)
        self.failure_status = failure_status
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def check(self) -> ProbeResult:
        session = await self._get_session()
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            async with session.get(self.url, timeout=timeout) as resp:
                if 200 <= resp.status < 300:
                    return ProbeResult.healthy(data={"status_code": resp.status})
                return ProbeResult(
                    self.failure_status,
                    f"HTTP {resp.status}",
                    {"status_code": resp.status},
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            message = str(e) or type(e).__name__
            logger.debug("HTTP dependency unreachable", url=self.url, error=message)
            return ProbeResult(self.failure_status, message, {"url": self.url}, e)
