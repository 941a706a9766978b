"""
Process and host resource probes.

- WorkingSetProbe: resident memory of this process
- DiskSpaceProbe: free space on a mount point
"""

from __future__ import annotations
import os
from typing import Optional

import psutil

from healthwatch.core.status import ProbeResult

_MB = 1024 * 1024


class WorkingSetProbe:
    """Degraded when this process' resident set exceeds max_mb."""

    def __init__(self, max_mb: float, process: Optional[psutil.Process] = None):
        self.max_mb = max_mb
        self._process = process or psutil.Process(os.getpid())

    async def check(self) -> ProbeResult:
        current_mb = self._process.memory_info().rss / _MB
        data = {"working_set_mb": round(current_mb, 1), "max_mb": self.max_mb}

        if current_mb > self.max_mb:
            return ProbeResult.degraded(
                f"WorkingSet {current_mb:.0f}MB > {self.max_mb:.0f}MB", data
            )
        return ProbeResult.healthy(f"WorkingSet {current_mb:.0f}MB", data)


class DiskSpaceProbe:
    """Degraded when free space on path drops below min_free_mb."""

    def __init__(self, min_free_mb: float, path: str = "/"):
        self.min_free_mb = min_free_mb
        self.path = path

    async def check(self) -> ProbeResult:
        try:
            usage = psutil.disk_usage(self.path)
        except OSError as e:
            return ProbeResult.unhealthy(str(e), error=e)

        free_mb = usage.free / _MB
        data = {"free_mb": round(free_mb, 1), "min_free_mb": self.min_free_mb, "path": self.path}

        if free_mb < self.min_free_mb:
            return ProbeResult.degraded(
                f"Low disk space: {free_mb:.0f}MB < {self.min_free_mb:.0f}MB", data
            )
        return ProbeResult.healthy(f"Free: {free_mb:.0f}MB", data)
