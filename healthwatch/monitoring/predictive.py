"""
Predictive Failure Analysis for healthwatch.

Forecasts near-term component failures from recorded history using a
deterministic heuristic scorer:
- Failure rate over the analysis window
- Trend between the older and the recent half of the window
- Hour-of-day seasonality
- Sliding-window anomaly detection (mean + 2 sigma)

The analyzer is itself a probe, so its verdict participates in the
details and ready views. Components predicted to fail raise critical
alerts through the AlertSink.

Usage:
    analyzer = PredictiveAnalyzer(history, alert_sink)
    registry.register("predictive-analysis", analyzer, tags={"ml", "predictive", "ready"})
"""

from __future__ import annotations
import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from healthwatch.core.errors import AnalysisComputationError, InsufficientHistoryError
from healthwatch.core.status import HealthStatus, ProbeResult, utcnow
from healthwatch.infrastructure.config import PredictiveConfig
from healthwatch.infrastructure.logging import get_logger
from healthwatch.infrastructure.metrics import metrics
from healthwatch.monitoring.alerts import Alert, AlertSeverity, AlertSink, AlertType
from healthwatch.monitoring.history import HistoryEntry, HistoryStore

logger = get_logger(__name__)

# Scoring constants
STABLE_TREND_TOLERANCE = 0.05
SEASONALITY_MIN_POINTS = 24
SEASONALITY_VARIANCE_THRESHOLD = 0.01
ANOMALY_MAX_WINDOW = 10
ANOMALY_SIGMAS = 2.0
SEASONALITY_MULTIPLIER = 1.2
ANOMALY_WEIGHT = 0.1
CONFIDENCE_FULL_POINTS = 100.0
CONFIDENCE_ANOMALY_PENALTY_CAP = 0.3
CONFIDENCE_FLOOR = 0.1


class Trend(Enum):
    """Direction of change in failure rate."""
    STABLE = "Stable"
    IMPROVING = "Improving"
    DETERIORATING = "Deteriorating"

    @property
    def multiplier(self) -> float:
        return _TREND_MULTIPLIERS[self]


_TREND_MULTIPLIERS = {
    Trend.DETERIORATING: 1.5,
    Trend.STABLE: 1.0,
    Trend.IMPROVING: 0.7,
}


@dataclass
class Prediction:
    """Failure forecast for one component."""
    component_name: str
    failure_probability: float
    confidence: float
    time_frame: timedelta
    analysis_timestamp: datetime
    metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def time_frame_hours(self) -> float:
        return self.time_frame.total_seconds() / 3600

    def to_dict(self) -> Dict[str, Any]:
        return {
            "component": self.component_name,
            "probability": round(self.failure_probability, 4),
            "timeframe_hours": self.time_frame_hours,
            "confidence": round(self.confidence, 4),
        }


# =============================================================================
# Scoring functions
# =============================================================================

def failure_rate(history: Sequence[HistoryEntry]) -> float:
    """Fraction of entries that were Unhealthy."""
    if not history:
        return 0.0
    failures = sum(1 for h in history if h.status == HealthStatus.UNHEALTHY)
    return failures / len(history)


def health_trend(history: Sequence[HistoryEntry]) -> Trend:
    """Compare the older half of the history with the recent half."""
    if len(history) < 2:
        return Trend.STABLE

    half = len(history) // 2
    older = history[:half]
    recent = history[-half:]

    difference = failure_rate(recent) - failure_rate(older)
    if abs(difference) < STABLE_TREND_TOLERANCE:
        return Trend.STABLE
    return Trend.DETERIORATING if difference > 0 else Trend.IMPROVING


def detect_seasonality(history: Sequence[HistoryEntry]) -> bool:
    """Flag an hour-of-day pattern in failure rate."""
    if len(history) < SEASONALITY_MIN_POINTS:
        return False

    by_hour: Dict[int, List[HistoryEntry]] = defaultdict(list)
    for entry in history:
        by_hour[entry.timestamp.hour].append(entry)

    hourly_rates = [failure_rate(group) for group in by_hour.values()]
    return statistics.pvariance(hourly_rates) > SEASONALITY_VARIANCE_THRESHOLD


def detect_anomalies(history: Sequence[HistoryEntry]) -> List[HistoryEntry]:
    """
    Entries belonging to windows whose failure rate is unusually high.

    Slides a window of min(10, n // 3) entries over the history, then flags
    windows above mean + 2 standard deviations of all window rates. The
    members of flagged windows are returned once each, oldest first.
    """
    if len(history) < 3:
        return []

    window_size = min(ANOMALY_MAX_WINDOW, len(history) // 3)
    starts = range(len(history) - window_size + 1)
    rates = [failure_rate(history[i:i + window_size]) for i in starts]

    threshold = statistics.fmean(rates) + ANOMALY_SIGMAS * statistics.pstdev(rates)

    flagged = set()
    for i, rate in zip(starts, rates):
        if rate > threshold:
            flagged.update(range(i, i + window_size))

    return [history[i] for i in sorted(flagged)]


def failure_probability(
    rate: float,
    trend: Trend,
    seasonal: bool,
    anomaly_count: int,
) -> float:
    """Adjust the raw failure rate by trend, seasonality and anomalies; cap at 1."""
    seasonality_multiplier = SEASONALITY_MULTIPLIER if seasonal else 1.0
    anomaly_multiplier = 1.0 + anomaly_count * ANOMALY_WEIGHT

    probability = rate * trend.multiplier * seasonality_multiplier * anomaly_multiplier
    return min(probability, 1.0)


def prediction_confidence(data_points: int, anomaly_count: int) -> float:
    """More history raises confidence; anomalies lower it. Floor of 0.1."""
    base = min(data_points / CONFIDENCE_FULL_POINTS, 1.0)
    penalty = min(anomaly_count * ANOMALY_WEIGHT, CONFIDENCE_ANOMALY_PENALTY_CAP)
    return max(base - penalty, CONFIDENCE_FLOOR)


def predict_time_frame(probability: float, trend: Trend) -> timedelta:
    """Expected horizon of the predicted failure."""
    if probability < 0.3:
        return timedelta(hours=24)
    if probability < 0.6:
        return timedelta(hours=12)
    if probability < 0.8:
        return timedelta(hours=6)
    return timedelta(hours=1) if trend == Trend.DETERIORATING else timedelta(hours=3)


# =============================================================================
# Analyzer
# =============================================================================

class PredictiveAnalyzer:
    """
    Probe that forecasts component failures from the history store.

    Never raises from check(): analysis errors surface as an Unhealthy
    result with the exception attached.
    """

    def __init__(
        self,
        history: HistoryStore,
        alert_sink: AlertSink,
        config: Optional[PredictiveConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.history = history
        self.alert_sink = alert_sink
        self.config = config or PredictiveConfig()
        self._clock = clock

    async def check(self) -> ProbeResult:
        """Run one analysis over the configured window."""
        try:
            logger.debug("Running predictive health analysis")
            entries = self._load_history()
            predictions = self.analyze(entries)
            return await self._evaluate(predictions)
        except InsufficientHistoryError as e:
            return ProbeResult.healthy(
                "Predictive analysis unavailable - insufficient history",
                {
                    "reason": "insufficient_history",
                    "available_data_points": e.available_data_points,
                },
            )
        except Exception as e:
            logger.exception("Predictive health analysis failed", error=str(e))
            error = e if isinstance(e, AnalysisComputationError) else AnalysisComputationError(str(e))
            if error is not e:
                error.__cause__ = e
            return ProbeResult.unhealthy(
                "Error during predictive analysis",
                {
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "last_analysis": self._clock().isoformat(),
                },
                error=error,
            )

    def _load_history(self) -> List[HistoryEntry]:
        entries = self.history.query(self.config.analysis_window)
        if not entries:
            raise InsufficientHistoryError(0)
        return entries

    def analyze(self, history: Sequence[HistoryEntry]) -> List[Prediction]:
        """Predict every component that has enough data points."""
        by_component: Dict[str, List[HistoryEntry]] = defaultdict(list)
        for entry in history:
            by_component[entry.component_name].append(entry)

        predictions = []
        for component, entries in by_component.items():
            if len(entries) < self.config.minimum_data_points:
                continue

            prediction = self._predict_safely(component, entries)
            if prediction is not None:
                predictions.append(prediction)

        return predictions

    def _predict_safely(self, component: str, entries: List[HistoryEntry]) -> Optional[Prediction]:
        try:
            return self.predict_component(component, entries)
        except Exception as e:
            logger.warning("Component prediction failed", component=component, error=str(e))
            return None

    def predict_component(self, component: str, entries: Sequence[HistoryEntry]) -> Prediction:
        """Score one component's history."""
        ordered = sorted(entries, key=lambda h: h.timestamp)

        rate = failure_rate(ordered)
        trend = health_trend(ordered)
        seasonal = detect_seasonality(ordered)
        anomalies = detect_anomalies(ordered)

        probability = failure_probability(rate, trend, seasonal, len(anomalies))
        confidence = prediction_confidence(len(ordered), len(anomalies))

        metrics.update_prediction(component, probability)

        return Prediction(
            component_name=component,
            failure_probability=probability,
            confidence=confidence,
            time_frame=predict_time_frame(probability, trend),
            analysis_timestamp=self._clock(),
            metrics={
                "failure_rate": rate,
                "trend": trend.value,
                "seasonality_detected": seasonal,
                "anomalies_count": len(anomalies),
                "data_points": len(ordered),
            },
        )

    def classify(self, predictions: Sequence[Prediction]) -> Dict[str, List[Prediction]]:
        """Split predictions into critical, degradation and healthy."""
        critical = self.config.critical_threshold
        degradation = self.config.degradation_threshold

        groups: Dict[str, List[Prediction]] = {"critical": [], "degradation": [], "healthy": []}
        for p in predictions:
            if p.failure_probability > critical:
                groups["critical"].append(p)
            elif p.failure_probability > degradation:
                groups["degradation"].append(p)
            else:
                groups["healthy"].append(p)
        return groups

    async def _evaluate(self, predictions: List[Prediction]) -> ProbeResult:
        groups = self.classify(predictions)
        critical = groups["critical"]
        degradation = groups["degradation"]

        data: Dict[str, Any] = {
            "total_predictions": len(predictions),
            "critical_predictions": len(critical),
            "degradation_predictions": len(degradation),
            "healthy_predictions": len(groups["healthy"]),
            "analysis_confidence": self._overall_confidence(predictions),
            "next_analysis": (
                self._clock() + timedelta(minutes=self.config.analysis_interval_minutes)
            ).isoformat(),
        }

        if critical:
            await self._send_critical_alerts(critical)
            data["highest_failure_probability"] = max(p.failure_probability for p in critical)
            data["predicted_failures"] = [p.to_dict() for p in critical]
            return ProbeResult.unhealthy(
                f"Critical predictions detected: {len(critical)} components at risk", data
            )

        if degradation:
            data["degraded_components"] = [p.to_dict() for p in degradation]
            return ProbeResult.degraded(
                f"Degradation predicted in {len(degradation)} components", data
            )

        return ProbeResult.healthy("Predictive analysis indicates a healthy system", data)

    @staticmethod
    def _overall_confidence(predictions: Sequence[Prediction]) -> float:
        if not predictions:
            return 0.0
        return statistics.fmean(p.confidence for p in predictions)

    async def _send_critical_alerts(self, predictions: Sequence[Prediction]) -> None:
        for prediction in predictions:
            alert = Alert(
                type=AlertType.CRITICAL,
                component=prediction.component_name,
                message=(
                    f"Failure predicted with {prediction.failure_probability:.1%} probability "
                    f"within {prediction.time_frame_hours:.1f} hours"
                ),
                severity=AlertSeverity.HIGH,
                timestamp=self._clock(),
                data=dict(prediction.metrics),
            )
            await self.alert_sink.send(alert)
            logger.warning(
                "Critical prediction alert sent",
                component=prediction.component_name,
                message=alert.message,
            )
