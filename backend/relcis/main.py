import logging
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from relcis.api.health import router as health_router
from relcis.api.router import api_router
from relcis.config import settings
from relcis.core.exceptions import AutomationError, BadRequestError
from relcis.core.logging_config import configure_logging
from relcis.middleware.request_id import RequestIDMiddleware
from relcis.services.browser import session_manager

# Configure structured logging (must happen before any logger is created)
configure_logging(log_format=settings.LOG_FORMAT, log_level=settings.LOG_LEVEL)

# Initialize Sentry error tracking
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        environment=settings.SENTRY_ENVIRONMENT,
        release=f"relcis@{settings.APP_VERSION}",
    )

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # The browser is launched lazily on the first lease
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    yield

    logger.info("Shutting down...")
    await session_manager.shutdown()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="RELCIS - browser-driven web search, image search and page "
    "capture with provider fallback and durable artifact storage.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Request ID middleware (must be added before other middleware)
app.add_middleware(RequestIDMiddleware)

app.add_middleware(GZipMiddleware, minimum_size=500)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BadRequestError)
async def bad_request_handler(request: Request, exc: BadRequestError):
    return JSONResponse(status_code=400, content={"success": False, "error": exc.message})


@app.exception_handler(AutomationError)
async def automation_error_handler(request: Request, exc: AutomationError):
    logger.error(
        f"{request.method} {request.url.path} failed "
        f"[{exc.kind.value}, provider={exc.provider}]: {exc.message}"
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.public_message},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"{request.method} {request.url.path} failed unexpectedly")
    return JSONResponse(
        status_code=500, content={"success": False, "error": "Internal server error"}
    )


app.include_router(api_router)

# Health & metrics routes (no /api prefix)
app.include_router(health_router)


@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "status": "running",
        "endpoints": {
            "search": "/api/search?query=<search_term>",
            "images": "/api/search/images?query=<search_term>&engine=yahoo|duckduckgo",
            "screenshot": "/api/screenshot?url=<website_url>",
            "read": "/api/screenshot/read?url=<website_url>",
        },
    }
