import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse, Response

from relcis.config import settings
from relcis.core.metrics import get_metrics, get_metrics_content_type

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/health",
    summary="Liveness check",
    description="Returns HTTP 200 while the application process is running.",
)
async def liveness():
    """Liveness probe — returns 200 if the process is running."""
    return {"status": "healthy"}


@router.get(
    "/health/ready",
    summary="Readiness check",
    description=(
        "Reports the shared browser session and artifact storage configuration. "
        "The browser is launched lazily, so a not-yet-started browser is ready; "
        "a browser that started and then disconnected is not. Returns HTTP 503 "
        "when any check fails."
    ),
)
async def readiness():
    """Readiness probe — browser session and storage configuration."""
    from relcis.services.browser import session_manager
    from relcis.services.storage import artifact_store

    checks = {}

    if session_manager.is_running:
        checks["browser"] = "ok"
    elif session_manager._browser is None:
        checks["browser"] = "ok (not started)"
    else:
        checks["browser"] = "error: disconnected"
    checks["active_leases"] = session_manager.active_leases

    checks["storage"] = "ok" if artifact_store.configured else "error: S3_BUCKET not set"

    all_ok = not any(
        isinstance(v, str) and v.startswith("error") for v in checks.values()
    )
    return JSONResponse(
        content={"status": "ready" if all_ok else "not ready", "checks": checks},
        status_code=200 if all_ok else 503,
    )


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Application metrics in Prometheus exposition format; 404 when disabled.",
)
async def metrics():
    """Prometheus metrics endpoint."""
    if not settings.METRICS_ENABLED:
        return Response(content="Metrics disabled", status_code=404)

    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type(),
    )
