"""Page capture: full-page screenshot + summary, and raw page reads."""

import logging
from dataclasses import dataclass, field

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError

from relcis.config import settings
from relcis.core.deadline import Deadline
from relcis.core.exceptions import AutomationError, NavigationFailure
from relcis.core.metrics import search_requests_total
from relcis.services.browser import SessionManager, session_manager
from relcis.services.stealth import generate_profile
from relcis.services.storage import ArtifactStore, artifact_store

logger = logging.getLogger(__name__)

# Settle time for JS-heavy pages after DOMContentLoaded (ms)
SETTLE_MS = 2000


@dataclass
class PageSummary:
    headings: list[dict] = field(default_factory=list)
    images: list[dict] = field(default_factory=list)
    meta_title: str = ""
    meta_description: str = ""


@dataclass
class ScreenshotCapture:
    screenshot_url: str
    summary: PageSummary


@dataclass
class PageRead:
    html: str
    html_url: str


def extract_page_summary(html: str) -> PageSummary:
    """Headings (h1-h3), images and meta title/description, in document order."""
    soup = BeautifulSoup(html, "lxml")

    headings = [
        {"tag": el.name.lower(), "text": el.get_text().strip()}
        for el in soup.select("h1, h2, h3")
    ]
    images = [
        {"src": img.get("src") or "", "alt": img.get("alt") or ""}
        for img in soup.find_all("img")
    ]

    meta_desc = soup.find("meta", attrs={"name": "description"})
    title_tag = soup.find("title")

    return PageSummary(
        headings=headings,
        images=images,
        meta_title=title_tag.get_text().strip() if title_tag else "",
        meta_description=(meta_desc.get("content") or "") if meta_desc else "",
    )


class PageCaptureService:
    def __init__(
        self,
        sessions: SessionManager | None = None,
        artifacts: ArtifactStore | None = None,
    ):
        self.sessions = sessions or session_manager
        self.artifacts = artifacts or artifact_store

    async def _load(self, page, url: str, deadline: Deadline) -> None:
        try:
            await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=deadline.timeout_ms(settings.NAVIGATION_TIMEOUT_MS),
            )
            await page.wait_for_timeout(deadline.timeout_ms(SETTLE_MS))
        except PlaywrightError as e:
            raise NavigationFailure(f"Failed to load {url}: {e}") from e

    async def screenshot(self, url: str, deadline: Deadline | None = None) -> ScreenshotCapture:
        deadline = deadline or Deadline(settings.REQUEST_DEADLINE_SECONDS)
        try:
            async with self.sessions.lease(generate_profile(), deadline) as lease:
                page = lease.page
                await self._load(page, url, deadline)
                try:
                    png = await page.screenshot(full_page=True, type="png")
                    html = await page.content()
                except PlaywrightError as e:
                    raise NavigationFailure(f"Failed to capture {url}: {e}") from e

            summary = extract_page_summary(html)
            screenshot_url = await self.artifacts.upload_screenshot(png, url)
        except AutomationError as e:
            search_requests_total.labels(kind="screenshot", status=e.kind.value).inc()
            raise

        search_requests_total.labels(kind="screenshot", status="success").inc()
        return ScreenshotCapture(screenshot_url=screenshot_url, summary=summary)

    async def read(self, url: str, deadline: Deadline | None = None) -> PageRead:
        deadline = deadline or Deadline(settings.REQUEST_DEADLINE_SECONDS)
        try:
            async with self.sessions.lease(generate_profile(), deadline) as lease:
                await self._load(lease.page, url, deadline)
                try:
                    html = await lease.page.content()
                except PlaywrightError as e:
                    raise NavigationFailure(f"Failed to read {url}: {e}") from e

            html_url = await self.artifacts.upload_html(html, url)
        except AutomationError as e:
            search_requests_total.labels(kind="read", status=e.kind.value).inc()
            raise

        logger.info(f"Stored page HTML for {url}: {html_url}")
        search_requests_total.labels(kind="read", status="success").inc()
        return PageRead(html=html, html_url=html_url)


capture_service = PageCaptureService()
