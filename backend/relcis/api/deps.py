"""Service providers for route handlers (overridable in tests)."""

from relcis.core.exceptions import BadRequestError
from relcis.services.capture import PageCaptureService, capture_service
from relcis.services.orchestrator import SearchOrchestrator, search_orchestrator


def get_orchestrator() -> SearchOrchestrator:
    return search_orchestrator


def get_capture_service() -> PageCaptureService:
    return capture_service


def require_param(value: str | None, message: str) -> str:
    """Reject a missing or blank query parameter with a 400."""
    if value is None or not value.strip():
        raise BadRequestError(message)
    return value.strip()
