from fastapi import APIRouter

from relcis.api import screenshot, search

api_router = APIRouter(prefix="/api")

api_router.include_router(search.router, prefix="/search", tags=["Search"])
api_router.include_router(screenshot.router, prefix="/screenshot", tags=["Screenshot"])
