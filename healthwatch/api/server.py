from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
import traceback

from healthwatch.core.aggregation import AggregationPolicy, is_ready_probe, is_startup_probe
from healthwatch.core.registry import ProbeRegistry
from healthwatch.core.status import HealthStatus, Report
from healthwatch.infrastructure.logging import get_logger
from healthwatch.monitoring.alerts import AlertSink
from healthwatch.monitoring.history import HistoryStore

logger = get_logger(__name__)

API_KEY_HEADER = "X-Health-ApiKey"

LINKS = {
    "self": {"href": "/health/details"},
    "live": {"href": "/health/live"},
    "ready": {"href": "/health/ready"},
}


def status_code_for(status: HealthStatus) -> int:
    """Degraded still serves traffic; only Unhealthy is 503."""
    return 503 if status == HealthStatus.UNHEALTHY else 200


def details_payload(report: Report) -> Dict[str, Any]:
    """JSON envelope shared by the details and JSON readiness responses."""
    return {
        "data": {
            "status": report.overall_status.label,
            "entries": [o.to_dict() for o in report.entries.values()],
            "durationMs": int(report.total_duration_ms),
            "service": report.service_name,
        },
        "errors": [],
        "warnings": [],
        "hasError": report.overall_status == HealthStatus.UNHEALTHY,
        "hasWarning": report.overall_status == HealthStatus.DEGRADED,
        "_links": LINKS,
    }


def create_app(
    registry: ProbeRegistry,
    alert_sink: Optional[AlertSink] = None,
    history: Optional[HistoryStore] = None,
    enable_startup_probe: bool = True,
    details_auth_enabled: bool = False,
    details_api_key: str = "",
    policy: Optional[AggregationPolicy] = None,
) -> FastAPI:
    """Build the health API over a probe registry."""
    policy = policy or AggregationPolicy()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifecycle events."""
        logger.info("Health API starting up", service=registry.service_name)
        yield
        logger.info("Health API shutting down")

    app = FastAPI(title=f"{registry.service_name} Health API", lifespan=lifespan)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions (500 errors)."""
        logger.error(
            "Unhandled API Exception",
            path=request.url.path,
            error=str(exc),
            traceback=traceback.format_exc(),
        )
        return JSONResponse(
            status_code=500,
            content={
                "type": "error",
                "error": {"type": "api_error", "message": "Internal server error"},
                "status": "fail",
            },
        )

    @app.get("/health/live")
    async def live():
        """Liveness never depends on any probe."""
        return PlainTextResponse(policy.live().label)

    @app.get("/health/ready")
    async def ready(request: Request):
        """Readiness: probes tagged ready or critical."""
        report = policy.ready(await registry.evaluate(is_ready_probe))
        status_code = status_code_for(report.overall_status)

        if "application/json" in request.headers.get("accept", "").lower():
            return JSONResponse(details_payload(report), status_code=status_code)
        return PlainTextResponse(report.overall_status.label, status_code=status_code)

    if enable_startup_probe:
        @app.get("/health/startup")
        async def startup():
            """Startup: probes tagged startup."""
            report = policy.startup(await registry.evaluate(is_startup_probe))
            return PlainTextResponse(
                report.overall_status.label,
                status_code=status_code_for(report.overall_status),
            )

    @app.get("/health/details")
    async def details(request: Request):
        """Every probe, with per-entry detail."""
        if details_auth_enabled:
            key = request.headers.get(API_KEY_HEADER)
            if not key or not details_api_key or key != details_api_key:
                logger.warning("Unauthorized details request", path=request.url.path)
                return PlainTextResponse("Unauthorized", status_code=401)

        report = policy.details(await registry.evaluate())
        return JSONResponse(details_payload(report))

    @app.get("/health/alerts")
    async def alerts(hours: float = 24.0):
        """Retained alerts and their statistics."""
        if alert_sink is None:
            return {"stats": None, "alerts": []}
        return {
            "stats": alert_sink.stats().to_dict(),
            "alerts": [a.to_dict() for a in alert_sink.recent(timedelta(hours=hours))],
        }

    @app.get("/health/history/stats")
    async def history_stats():
        """Summary of the recorded probe history."""
        if history is None:
            return {"stats": None}
        return {"stats": history.stats().to_dict()}

    return app
