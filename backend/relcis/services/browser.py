import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

from playwright.async_api import async_playwright, Browser, BrowserContext, Page

from relcis.config import settings
from relcis.core.deadline import Deadline
from relcis.core.exceptions import BrowserPoolExhausted, SessionInitFailure
from relcis.core.metrics import (
    active_browser_contexts,
    browser_launches_total,
    browser_pool_exhausted_total,
)
from relcis.services.stealth import StealthProfile

logger = logging.getLogger(__name__)


@dataclass
class PageLease:
    """An isolated context + page handed out for one logical operation."""

    context: BrowserContext
    page: Page
    profile: StealthProfile
    released: bool = False

    async def cookies(self) -> list[dict]:
        return await self.context.cookies()


class SessionManager:
    """Owns the single shared Chromium process and issues per-request leases.

    The browser is launched lazily on the first lease and reused by every
    request. Each lease gets its own BrowserContext, so cookies and storage
    never leak between concurrent requests. Concurrent leases are bounded by
    a semaphore; waiting longer than the admission timeout raises
    BrowserPoolExhausted.
    """

    _CHROMIUM_ARGS = [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--disable-accelerated-2d-canvas",
        "--disable-software-rasterizer",
        "--disable-blink-features=AutomationControlled",
        "--disable-infobars",
        "--disable-extensions",
        "--no-first-run",
        "--no-default-browser-check",
        "--disable-background-networking",
        "--disable-sync",
        "--lang=en-US,en",
    ]

    def __init__(self, max_contexts: int | None = None):
        self._max_contexts = max_contexts or settings.MAX_BROWSER_CONTEXTS
        self._playwright = None
        self._browser: Browser | None = None
        self._semaphore: asyncio.Semaphore | None = None
        self._init_lock: asyncio.Lock | None = None
        self._loop = None
        self._active = 0

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    @property
    def active_leases(self) -> int:
        return self._active

    def _bind_loop(self) -> None:
        """(Re)create loop-bound primitives when the running loop changes."""
        current_loop = asyncio.get_running_loop()
        if self._loop is not current_loop:
            self._init_lock = asyncio.Lock()
            self._semaphore = asyncio.Semaphore(self._max_contexts)
            self._loop = current_loop
            self._playwright = None
            self._browser = None

    async def initialize(self) -> Browser:
        """Return the shared browser, launching it if needed.

        A failed launch raises SessionInitFailure and leaves the manager
        empty; the next call makes a fresh attempt.
        """
        self._bind_loop()
        if self.is_running:
            return self._browser

        async with self._init_lock:
            # Double-check after acquiring lock
            if self.is_running:
                return self._browser

            if self._browser is not None:
                logger.warning("Chromium disconnected, relaunching")
                await self._teardown()

            try:
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=settings.BROWSER_HEADLESS,
                    args=self._CHROMIUM_ARGS,
                )
            except Exception as e:
                browser_launches_total.labels(status="failure").inc()
                logger.error(f"Failed to launch browser: {e}")
                await self._teardown()
                raise SessionInitFailure(f"Browser initialization failed: {e}") from e

            browser_launches_total.labels(status="success").inc()
            logger.info(
                f"Browser session started (max_contexts={self._max_contexts}, "
                f"headless={settings.BROWSER_HEADLESS})"
            )
            return self._browser

    async def _teardown(self) -> None:
        browser, pw = self._browser, self._playwright
        self._browser = None
        self._playwright = None
        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.debug(f"Browser close failed: {e}")
        if pw is not None:
            try:
                await pw.stop()
            except Exception as e:
                logger.debug(f"Playwright stop failed: {e}")

    async def reset(self) -> None:
        """Tear the shared browser down; the next lease relaunches it."""
        if self._init_lock is None:
            await self._teardown()
            return
        async with self._init_lock:
            await self._teardown()
        logger.info("Browser session reset")

    async def shutdown(self) -> None:
        await self._teardown()
        logger.info("Browser session shut down")

    async def acquire(
        self, profile: StealthProfile, deadline: Deadline | None = None
    ) -> PageLease:
        """Admit the caller, then open a fresh context + page for it."""
        deadline = deadline or Deadline.unbounded()
        browser = await self.initialize()

        timeout = deadline.timeout_s(settings.LEASE_ACQUIRE_TIMEOUT)
        try:
            async with asyncio.timeout(timeout):
                await self._semaphore.acquire()
        except TimeoutError:
            browser_pool_exhausted_total.inc()
            deadline.check("lease admission")
            raise BrowserPoolExhausted(
                f"No browser slots available after {timeout:.0f}s"
            )

        context = None
        try:
            context = await browser.new_context(**profile.context_options())
            if profile.cookies:
                try:
                    await context.add_cookies(list(profile.cookies))
                except Exception as e:
                    logger.debug(f"Restoring persisted cookies failed: {e}")
            await context.add_init_script(profile.init_script())
            page = await context.new_page()
            page.set_default_navigation_timeout(settings.NAVIGATION_TIMEOUT_MS)
        except BaseException as e:
            # Cancellation lands here too; the slot must come back first
            self._semaphore.release()
            if context is not None:
                await asyncio.shield(self._close_quietly(context))
            if isinstance(e, Exception) and not self.is_running:
                raise SessionInitFailure(f"Browser closed while opening a context: {e}") from e
            raise

        self._active += 1
        active_browser_contexts.inc()
        return PageLease(context=context, page=page, profile=profile)

    async def release(self, lease: PageLease) -> None:
        """Close the lease's page and context. Safe to call more than once."""
        if lease.released:
            return
        lease.released = True
        try:
            await self._close_quietly(lease.page)
            await self._close_quietly(lease.context)
        finally:
            self._active -= 1
            active_browser_contexts.dec()
            self._semaphore.release()

    @staticmethod
    async def _close_quietly(closable) -> None:
        try:
            await closable.close()
        except Exception as e:
            logger.debug(f"Close during lease cleanup failed: {e}")

    @asynccontextmanager
    async def lease(self, profile: StealthProfile, deadline: Deadline | None = None):
        """Scoped lease; released on every exit path, cancellation included."""
        lease = await self.acquire(profile, deadline)
        try:
            yield lease
        finally:
            # Shield cleanup so a cancelled request cannot leak the context
            try:
                await asyncio.shield(self.release(lease))
            except asyncio.CancelledError:
                # The shielded release keeps running in the background
                pass


session_manager = SessionManager()
