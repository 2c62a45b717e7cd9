import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from relcis.api.deps import get_orchestrator, require_param
from relcis.config import settings
from relcis.core.exceptions import AutomationError
from relcis.schemas.common import ErrorResponse
from relcis.schemas.search import (
    ImageResultItem,
    ImageSearchResponse,
    SearchResponse,
    SearchResultItem,
)
from relcis.services.orchestrator import SearchOrchestrator

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "",
    response_model=SearchResponse,
    summary="Web search",
    description=(
        "Search the web through a chain of browser-driven providers "
        "(Yahoo, Bing, DuckDuckGo by default) and return up to three results. "
        "Returns 503 when every provider is blocked by a CAPTCHA."
    ),
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def search_web(
    query: str | None = Query(default=None, description="Search terms"),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
):
    query = require_param(query, "Search query is required")
    results = await orchestrator.search_web(query)
    return SearchResponse(
        success=True,
        results=[SearchResultItem.model_validate(r) for r in results],
    )


@router.get(
    "/images",
    response_model=ImageSearchResponse,
    response_model_exclude_none=True,
    summary="Image search",
    description=(
        "Search images on the selected engine (yahoo or duckduckgo; unknown "
        "engines use duckduckgo) and mirror each result into artifact storage. "
        "Results whose mirror fails keep their original imageUrl."
    ),
)
async def search_images(
    query: str | None = Query(default=None, description="Search terms"),
    engine: str | None = Query(default=None, description="yahoo | duckduckgo"),
    limit: int | None = Query(default=None, ge=1, le=settings.IMAGE_RESULT_MAX),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
):
    engine_name = orchestrator.resolve_image_engine(engine)
    if query is None or not query.strip():
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "engine": engine_name,
                "query": "",
                "error": "Query is required",
            },
        )
    query = query.strip()

    try:
        results = await orchestrator.search_images(query, engine_name, limit)
    except AutomationError as e:
        logger.error(f"Image search on {engine_name} failed: {e.message}")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "engine": engine_name,
                "query": query,
                "error": e.message,
            },
        )

    items = [ImageResultItem.model_validate(r) for r in results]
    return ImageSearchResponse(
        success=True,
        engine=engine_name,
        query=query,
        results=items,
        count=len(items),
    )
