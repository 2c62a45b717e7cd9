import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from relcis.api.deps import get_capture_service, require_param
from relcis.core.exceptions import AutomationError
from relcis.schemas.common import ErrorResponse
from relcis.schemas.screenshot import PageReadResponse, PageSummaryModel, ScreenshotResponse
from relcis.services.capture import PageCaptureService

router = APIRouter()
logger = logging.getLogger(__name__)

CAPTURE_ERROR = "Failed to take screenshot or extract HTML"


def _capture_failed(url: str, e: AutomationError) -> JSONResponse:
    logger.error(f"Capture of {url} failed [{e.kind.value}]: {e.message}")
    return JSONResponse(
        status_code=e.status_code,
        content={"success": False, "error": CAPTURE_ERROR},
    )


@router.get(
    "",
    response_model=ScreenshotResponse,
    summary="Screenshot a page",
    description=(
        "Load the URL in an isolated browser context, store a full-page PNG "
        "screenshot and return its URL with a summary of the page's headings, "
        "images and meta tags."
    ),
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def take_screenshot(
    url: str | None = Query(default=None, description="Page to capture"),
    capture: PageCaptureService = Depends(get_capture_service),
):
    url = require_param(url, "URL is required")
    try:
        result = await capture.screenshot(url)
    except AutomationError as e:
        return _capture_failed(url, e)
    return ScreenshotResponse(
        success=True,
        screenshot_url=result.screenshot_url,
        html=PageSummaryModel.model_validate(result.summary),
    )


@router.get(
    "/read",
    response_model=PageReadResponse,
    summary="Read a page",
    description="Return the rendered HTML of a page and the URL of its stored copy.",
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def read_site(
    url: str | None = Query(default=None, description="Page to read"),
    capture: PageCaptureService = Depends(get_capture_service),
):
    url = require_param(url, "URL is required")
    try:
        result = await capture.read(url)
    except AutomationError as e:
        return _capture_failed(url, e)
    return PageReadResponse(success=True, html=result.html, html_url=result.html_url)
