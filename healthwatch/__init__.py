"""Health-state evaluation, monitoring and predictive failure analysis."""

__version__ = "0.1.0"
