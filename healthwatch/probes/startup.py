"""Startup gate: Unhealthy until the application signals it is ready."""

from __future__ import annotations

from healthwatch.core.status import ProbeResult


class StartupSignal:
    """One-way flag flipped once the application has finished initializing."""

    def __init__(self):
        self._ready = False

    @property
    def is_ready(self) -> bool:
        return self._ready

    def mark_ready(self) -> None:
        self._ready = True


class StartupGateProbe:
    """Reports the state of a StartupSignal."""

    def __init__(self, signal: StartupSignal):
        self._signal = signal

    async def check(self) -> ProbeResult:
        if self._signal.is_ready:
            return ProbeResult.healthy("Startup complete")
        return ProbeResult.unhealthy("Startup in progress")
