"""Exception taxonomy for health evaluation, analysis and delivery."""


class HealthwatchError(Exception):
    """Base class for all healthwatch errors."""
    pass


class ProbeExecutionError(HealthwatchError):
    """A single probe raised or timed out. Contained by the registry."""

    def __init__(self, probe_name: str, message: str):
        super().__init__(f"{probe_name}: {message}")
        self.probe_name = probe_name
        self.message = message


class InsufficientHistoryError(HealthwatchError):
    """Not enough history to analyse. Reported as Healthy, not a failure."""

    def __init__(self, available_data_points: int = 0):
        super().__init__(f"insufficient history ({available_data_points} data points)")
        self.available_data_points = available_data_points


class AnalysisComputationError(HealthwatchError):
    """Unexpected failure inside the statistical analysis."""
    pass


class PublishError(HealthwatchError):
    """The message bus was unreachable or the channel was closed."""
    pass


class AlertDeliveryError(HealthwatchError):
    """An external alert channel rejected or failed a delivery."""

    def __init__(self, channel: str, message: str):
        super().__init__(f"[{channel}] {message}")
        self.channel = channel
