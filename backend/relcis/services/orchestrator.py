"""Retry & fallback orchestration across providers.

Per provider (one lease each):

    Idle -> Navigating -> AwaitingClassification
        RESULTS_PRESENT            -> Succeeded (extract and return)
        BLOCKED | INDETERMINATE    -> retry after jittered backoff, or give up
        navigation error           -> retry after jittered backoff, or give up

Giving up captures a debug snapshot and hands the last error to the chain.
Web search walks a fixed provider chain; image search uses only the
caller's engine. Lease admission, launch and deadline failures abort the
whole request immediately.
"""

import logging
import random
import time
from dataclasses import dataclass

from playwright.async_api import Error as PlaywrightError

from relcis.config import settings
from relcis.core.deadline import Deadline
from relcis.core.exceptions import (
    AllProvidersExhausted,
    AutomationError,
    BlockDetected,
    BrowserPoolExhausted,
    DeadlineExceeded,
    ErrorKind,
    NavigationFailure,
    RetriesExhausted,
    SessionInitFailure,
)
from relcis.core.metrics import (
    last_resort_attempts_total,
    provider_attempt_duration_seconds,
    provider_attempts_total,
    provider_fallbacks_total,
    search_requests_total,
)
from relcis.services.adapters import ImageResult, ProviderAdapter, SearchResult, get_adapter
from relcis.services.browser import SessionManager, session_manager
from relcis.services.detection import PageState, classify
from relcis.services.diagnostics import capture_debug_snapshot
from relcis.services.providers import IMAGE_ENGINES, Provider, get_spec, resolve_web_chain
from relcis.services.stealth import CookieStore, cookie_store, generate_profile
from relcis.services.storage import ArtifactStore, artifact_store

logger = logging.getLogger(__name__)

# Errors that are not a provider's fault; falling back would not help
_FATAL_ERRORS = (SessionInitFailure, BrowserPoolExhausted, DeadlineExceeded)

# Tail-of-chain failures that earn one last-resort alternate attempt
LAST_RESORT_KINDS = frozenset({ErrorKind.BLOCKED, ErrorKind.EXHAUSTED})


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 5.0
    jitter: float = 3.0
    blocked_base_delay: float = 5.0
    blocked_jitter: float = 3.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_retries=max(1, settings.PROVIDER_MAX_RETRIES),
            base_delay=settings.RETRY_BASE_DELAY,
            jitter=settings.RETRY_JITTER,
            blocked_base_delay=settings.BLOCKED_RETRY_BASE_DELAY,
            blocked_jitter=settings.BLOCKED_RETRY_JITTER,
        )

    def bounds(self, kind: ErrorKind) -> tuple[float, float]:
        if kind in (ErrorKind.BLOCKED, ErrorKind.EXHAUSTED):
            return self.blocked_base_delay, self.blocked_base_delay + self.blocked_jitter
        return self.base_delay, self.base_delay + self.jitter

    def delay_for(self, error: AutomationError) -> float:
        low, high = self.bounds(error.kind)
        return random.uniform(low, high)


@dataclass
class RetryAttempt:
    """Transient per-provider retry state for one request."""

    provider: str
    attempt: int = 0
    last_error: AutomationError | None = None


class SearchOrchestrator:
    def __init__(
        self,
        sessions: SessionManager | None = None,
        cookies: CookieStore | None = None,
        artifacts: ArtifactStore | None = None,
        policy: RetryPolicy | None = None,
        web_chain: list[Provider] | None = None,
        last_resort: Provider | None = None,
        adapter_factory=get_adapter,
        snapshot=capture_debug_snapshot,
    ):
        self.sessions = sessions or session_manager
        self.cookies = cookies or cookie_store
        self.artifacts = artifacts or artifact_store
        self.policy = policy or RetryPolicy.from_settings()
        self.web_chain = (
            web_chain if web_chain is not None else resolve_web_chain(settings.WEB_SEARCH_CHAIN)
        )
        if last_resort is None and settings.WEB_SEARCH_LAST_RESORT:
            resolved = resolve_web_chain([settings.WEB_SEARCH_LAST_RESORT])
            last_resort = resolved[0] if resolved else None
        self.last_resort = last_resort
        self._adapter_factory = adapter_factory
        self._snapshot = snapshot

    # ------------------------------------------------------------------
    # Single provider
    # ------------------------------------------------------------------

    async def run_provider(
        self,
        page,
        adapter: ProviderAdapter,
        query: str,
        deadline: Deadline,
        limit: int | None = None,
    ) -> list:
        """Bounded retry loop for one provider on an already-leased page."""
        spec = adapter.spec
        policy = self.policy
        state = RetryAttempt(provider=spec.name)
        submitted = False

        for attempt in range(1, policy.max_retries + 1):
            state.attempt = attempt
            deadline.check(f"{spec.label} attempt {attempt}")
            started = time.monotonic()
            try:
                if not submitted:
                    await adapter.submit_query(page, query, deadline)
                    submitted = True
                else:
                    await page.reload(
                        wait_until="networkidle",
                        timeout=deadline.timeout_ms(settings.NAVIGATION_TIMEOUT_MS),
                    )

                page_state = await classify(
                    page, spec, deadline.timeout_ms(settings.DETECTION_TIMEOUT_MS)
                )
                if page_state is PageState.RESULTS_PRESENT:
                    results = await adapter.extract(page, limit)
                    provider_attempts_total.labels(provider=spec.name, outcome="success").inc()
                    logger.info(
                        f"{spec.label} succeeded on attempt {attempt}: {len(results)} results"
                    )
                    return results

                if page_state is PageState.BLOCKED:
                    state.last_error = BlockDetected(
                        f"CAPTCHA detected on {spec.label}", provider=spec.name
                    )
                else:
                    state.last_error = RetriesExhausted(
                        f"CAPTCHA or load failure on {spec.label}: results never appeared",
                        provider=spec.name,
                    )
                outcome = page_state.value
            except _FATAL_ERRORS:
                raise
            except AutomationError as e:
                state.last_error = e
                outcome = e.kind.value
            except PlaywrightError as e:
                state.last_error = NavigationFailure(
                    f"{spec.label} navigation failed: {e}", provider=spec.name
                )
                outcome = ErrorKind.NAVIGATION.value
            finally:
                provider_attempt_duration_seconds.labels(provider=spec.name).observe(
                    time.monotonic() - started
                )

            provider_attempts_total.labels(provider=spec.name, outcome=outcome).inc()
            logger.warning(
                f"{spec.label} attempt {attempt}/{policy.max_retries} failed: "
                f"{state.last_error.message}"
            )
            if attempt < policy.max_retries:
                await deadline.sleep(policy.delay_for(state.last_error))

        await self._snapshot(page, spec.name, policy.max_retries)
        raise state.last_error

    async def search_provider(
        self,
        provider: Provider,
        query: str,
        deadline: Deadline,
        limit: int | None = None,
        persist_cookies: bool = False,
    ) -> list:
        """Lease a page, run one provider, release the page."""
        adapter = self._adapter_factory(provider)
        stored = await self.cookies.load() if persist_cookies else ()
        profile = generate_profile(stored)

        async with self.sessions.lease(profile, deadline) as lease:
            results = await self.run_provider(lease.page, adapter, query, deadline, limit)
            if persist_cookies:
                try:
                    await self.cookies.save(await lease.cookies())
                except PlaywrightError as e:
                    logger.debug(f"Reading cookies from {adapter.spec.label} failed: {e}")
            return results

    # ------------------------------------------------------------------
    # Web search chain
    # ------------------------------------------------------------------

    def wants_last_resort(self, error: AutomationError) -> bool:
        """The tail provider was blocked or never loaded: try one alternate."""
        return self.last_resort is not None and error.kind in LAST_RESORT_KINDS

    async def search_web(self, query: str, deadline: Deadline | None = None) -> list[SearchResult]:
        deadline = deadline or Deadline(settings.REQUEST_DEADLINE_SECONDS)
        if not self.web_chain:
            raise NavigationFailure("No web search providers configured")

        attempted: list[str] = []
        last_error: AutomationError | None = None
        try:
            for provider in self.web_chain:
                attempted.append(provider.value)
                try:
                    results = await self.search_provider(provider, query, deadline)
                except _FATAL_ERRORS:
                    raise
                except AutomationError as e:
                    last_error = e
                    provider_fallbacks_total.labels(provider=provider.value, kind=e.kind.value).inc()
                    logger.error(f"{get_spec(provider).label} search failed: {e.message}")
                    continue
                search_requests_total.labels(kind="web", status="success").inc()
                return results

            if self.wants_last_resort(last_error):
                alternate = self.last_resort
                attempted.append(alternate.value)
                last_resort_attempts_total.inc()
                logger.warning(
                    f"Chain exhausted ({last_error.kind.value}), "
                    f"last-resort attempt with {get_spec(alternate).label}"
                )
                try:
                    results = await self.search_provider(alternate, query, deadline)
                except _FATAL_ERRORS:
                    raise
                except AutomationError as e:
                    last_error = e
                    logger.error(f"Last-resort {get_spec(alternate).label} failed: {e.message}")
                else:
                    search_requests_total.labels(kind="web", status="success").inc()
                    return results
        except AutomationError as e:
            search_requests_total.labels(kind="web", status=e.kind.value).inc()
            raise

        search_requests_total.labels(kind="web", status=last_error.kind.value).inc()
        raise AllProvidersExhausted(last_error, attempted)

    # ------------------------------------------------------------------
    # Image search
    # ------------------------------------------------------------------

    @staticmethod
    def resolve_image_engine(engine: str | None) -> str:
        """Default engine when omitted; unknown engines use DuckDuckGo."""
        if not engine:
            return settings.IMAGE_DEFAULT_ENGINE
        engine = engine.strip().lower()
        return engine if engine in IMAGE_ENGINES else "duckduckgo"

    async def search_images(
        self,
        query: str,
        engine: str | None = None,
        limit: int | None = None,
        deadline: Deadline | None = None,
    ) -> list[ImageResult]:
        """Search the caller's engine and mirror each result into storage."""
        deadline = deadline or Deadline(settings.REQUEST_DEADLINE_SECONDS)
        engine = self.resolve_image_engine(engine)
        limit = limit or settings.IMAGE_RESULT_LIMIT

        try:
            results = await self.search_provider(
                IMAGE_ENGINES[engine], query, deadline, limit=limit, persist_cookies=True
            )
        except AutomationError as e:
            search_requests_total.labels(kind="image", status=e.kind.value).inc()
            raise

        mirrored = await self.artifacts.mirror_results(results, query)
        search_requests_total.labels(kind="image", status="success").inc()
        return mirrored


search_orchestrator = SearchOrchestrator()
