"""
Built-in probes for healthwatch.

Provides:
- startup: StartupSignal and the startup gate probe
- system: process working set and disk space probes
- http: HTTP dependency probe
"""

from healthwatch.probes.startup import StartupSignal, StartupGateProbe
from healthwatch.probes.system import WorkingSetProbe, DiskSpaceProbe
from healthwatch.probes.http import HttpDependencyProbe

__all__ = [
    "StartupSignal",
    "StartupGateProbe",
    "WorkingSetProbe",
    "DiskSpaceProbe",
    "HttpDependencyProbe",
]
