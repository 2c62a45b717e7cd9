import logging

from pydantic_settings import BaseSettings
from typing import List

_logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # App
    APP_NAME: str = "RELCIS"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Browser session
    BROWSER_HEADLESS: bool = True
    MAX_BROWSER_CONTEXTS: int = 6  # Concurrent leases sharing the one browser
    LEASE_ACQUIRE_TIMEOUT: float = 30.0  # seconds to wait for a free slot
    NAVIGATION_TIMEOUT_MS: int = 30000
    QUERY_INPUT_TIMEOUT_MS: int = 10000
    DETECTION_TIMEOUT_MS: int = 15000

    # Retry & fallback
    PROVIDER_MAX_RETRIES: int = 3
    RETRY_BASE_DELAY: float = 5.0  # seconds, navigation-exception path
    RETRY_JITTER: float = 3.0
    BLOCKED_RETRY_BASE_DELAY: float = 5.0  # seconds, CAPTCHA/indeterminate path
    BLOCKED_RETRY_JITTER: float = 3.0
    WEB_SEARCH_CHAIN: List[str] = ["yahoo", "bing", "duckduckgo"]
    WEB_SEARCH_LAST_RESORT: str = "yahoo"  # empty = disabled
    REQUEST_DEADLINE_SECONDS: float = 120.0

    # Image search
    IMAGE_DEFAULT_ENGINE: str = "yahoo"
    IMAGE_RESULT_LIMIT: int = 1
    IMAGE_RESULT_MAX: int = 50
    IMAGE_FETCH_TIMEOUT: float = 15.0

    # Local state
    COOKIE_STORE_PATH: str = "./data/cookies.json"
    DEBUG_SNAPSHOT_DIR: str = "./debug"

    # Artifact storage (S3 + CDN)
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-1"
    S3_BUCKET: str = ""
    S3_ENDPOINT_URL: str = ""  # For S3-compatible stores (MinIO, R2)
    CDN_BASE_URL: str = ""  # e.g. https://dxxxx.cloudfront.net
    ARTIFACT_CACHE_CONTROL: str = "public, max-age=31536000, immutable"

    # Sentry
    SENTRY_DSN: str = ""
    SENTRY_TRACES_SAMPLE_RATE: float = 0.2
    SENTRY_ENVIRONMENT: str = "development"

    # Logging
    LOG_FORMAT: str = "json"  # "json" for production, "text" for development
    LOG_LEVEL: str = "INFO"

    # Metrics
    METRICS_ENABLED: bool = True

    def model_post_init(self, __context) -> None:
        if not self.S3_BUCKET:
            _logger.warning(
                "S3_BUCKET not set — screenshot and HTML uploads will fail. "
                "Set S3_BUCKET in your .env or environment."
            )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
