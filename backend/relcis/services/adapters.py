"""Per-provider extraction adapters.

An adapter drives a human-like query submission on its provider and maps
the provider's DOM to SearchResult / ImageResult records. Extraction runs
inside the page (``page.evaluate``); if the page's execution context is gone
the same selectors are applied to the captured HTML with BeautifulSoup.
"""

import logging
import random
import re
from dataclasses import asdict, dataclass
from urllib.parse import quote_plus, urljoin

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from relcis.config import settings
from relcis.core.deadline import Deadline
from relcis.core.exceptions import StructureChanged
from relcis.services.providers import (
    ImageSelectors,
    Provider,
    ProviderSpec,
    SearchKind,
    WebSelectors,
    get_spec,
)

logger = logging.getLogger(__name__)

WEB_RESULT_LIMIT = 3

# Per-character typing delay (ms)
TYPING_DELAY_MS = (100, 150)


@dataclass(frozen=True)
class SearchResult:
    title: str
    url: str
    description: str = ""


@dataclass(frozen=True)
class ImageResult:
    image_url: str
    thumbnail_url: str
    title: str
    source_url: str
    source_name: str
    width: int | None = None
    height: int | None = None
    persisted_url: str | None = None


# ---------------------------------------------------------------------------
# In-page extraction scripts (selectors are passed in as the argument)
# ---------------------------------------------------------------------------

_WEB_ROWS_JS = """
(sel) => {
    const rows = [];
    for (const el of document.querySelectorAll(sel.item)) {
        const titleEl = sel.title ? el.querySelector(sel.title) : el;
        const holder = el.closest(sel.container);
        const descEl = holder ? holder.querySelector(sel.description) : null;
        rows.push({
            title: titleEl ? (titleEl.textContent || '').trim() : null,
            url: el.getAttribute('href') || '',
            description: descEl ? (descEl.textContent || '').trim() : '',
        });
    }
    return rows;
}
"""

_IMAGE_ROWS_JS = """
(sel) => {
    const rows = [];
    const text = (root, s) => {
        if (!s) return '';
        const n = root.querySelector(s);
        return n ? (n.textContent || '').trim() : '';
    };
    for (const el of document.querySelectorAll(sel.item)) {
        const img = el.querySelector(sel.image);
        if (!img) continue;
        let imageUrl = '';
        for (const attr of sel.image_attrs) {
            const v = img.getAttribute(attr);
            if (v) { imageUrl = v; break; }
        }
        const link = el.querySelector(sel.link);
        rows.push({
            image_url: imageUrl,
            thumbnail_url: img.getAttribute(sel.thumbnail_attr) || imageUrl,
            title: text(el, sel.title),
            source_url: link ? (link.getAttribute('href') || '') : '',
            source_name: text(el, sel.source_name),
            dimensions: text(el, sel.dimensions),
        });
    }
    return rows;
}
"""

# Scrolls ~70% of the page in small random steps, then stops on its own
_HUMAN_SCROLL_JS = """
() => {
    const totalHeight = document.body ? document.body.scrollHeight : 0;
    let scrolled = 0;
    const timer = setInterval(() => {
        const step = Math.random() * 100 + 50;
        window.scrollBy(0, step);
        scrolled += step;
        if (scrolled > totalHeight * 0.7) clearInterval(timer);
    }, Math.random() * 300 + 200);
}
"""


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

_DIMENSIONS_RE = re.compile(r"(\d[\d,]*)\s*[x×X]\s*(\d[\d,]*)")


def absolutize(url: str, origin: str) -> str:
    """Resolve relative and protocol-relative URLs against ``origin``."""
    url = (url or "").strip()
    if not url or url.startswith(("http://", "https://", "data:")):
        return url
    return urljoin(origin.rstrip("/") + "/", url)


def parse_dimensions(text: str | None) -> tuple[int | None, int | None]:
    """Parse "758 × 1053" / "640x480" style strings; (None, None) otherwise."""
    if not text:
        return None, None
    match = _DIMENSIONS_RE.search(text)
    if not match:
        return None, None
    width = int(match.group(1).replace(",", ""))
    height = int(match.group(2).replace(",", ""))
    if width <= 0 or height <= 0:
        return None, None
    return width, height


def normalize_web_rows(
    rows: list[dict], origin: str, limit: int = WEB_RESULT_LIMIT
) -> list[SearchResult]:
    results: list[SearchResult] = []
    for row in rows:
        if len(results) >= limit:
            break
        title = row.get("title")
        url = (row.get("url") or "").strip()
        # No title element, or a title without a link: not a usable result
        if title is None or not url:
            continue
        results.append(
            SearchResult(
                title=title.strip(),
                url=absolutize(url, origin),
                description=(row.get("description") or "").strip(),
            )
        )
    return results


def normalize_image_rows(
    rows: list[dict], origin: str, limit: int | None = None
) -> list[ImageResult]:
    results: list[ImageResult] = []
    for row in rows:
        if limit is not None and len(results) >= limit:
            break
        image_url = absolutize(row.get("image_url") or "", origin)
        if not image_url:
            continue
        width, height = parse_dimensions(row.get("dimensions"))
        results.append(
            ImageResult(
                image_url=image_url,
                thumbnail_url=absolutize(row.get("thumbnail_url") or "", origin)
                or image_url,
                title=(row.get("title") or "").strip(),
                source_url=absolutize(row.get("source_url") or "", origin),
                source_name=(row.get("source_name") or "").strip(),
                width=width,
                height=height,
            )
        )
    return results


# ---------------------------------------------------------------------------
# Offline (BeautifulSoup) row extraction, same selectors as the JS above
# ---------------------------------------------------------------------------


def _text(tag) -> str:
    return tag.get_text().strip() if tag is not None else ""


def parse_web_rows(html: str, sel: WebSelectors) -> list[dict]:
    soup = BeautifulSoup(html, "lxml")
    rows = []
    for el in soup.select(sel.item):
        title_el = el.select_one(sel.title) if sel.title else el
        holder = el.css.closest(sel.container)
        desc_el = holder.select_one(sel.description) if holder is not None else None
        rows.append(
            {
                "title": _text(title_el) if title_el is not None else None,
                "url": el.get("href") or "",
                "description": _text(desc_el),
            }
        )
    return rows


def parse_image_rows(html: str, sel: ImageSelectors) -> list[dict]:
    soup = BeautifulSoup(html, "lxml")
    rows = []
    for el in soup.select(sel.item):
        img = el.select_one(sel.image)
        if img is None:
            continue
        image_url = next((img.get(a) for a in sel.image_attrs if img.get(a)), "")
        link = el.select_one(sel.link)
        rows.append(
            {
                "image_url": image_url,
                "thumbnail_url": img.get(sel.thumbnail_attr) or image_url,
                "title": _text(el.select_one(sel.title)) if sel.title else "",
                "source_url": (link.get("href") or "") if link is not None else "",
                "source_name": _text(el.select_one(sel.source_name))
                if sel.source_name
                else "",
                "dimensions": _text(el.select_one(sel.dimensions))
                if sel.dimensions
                else "",
            }
        )
    return rows


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------


class ProviderAdapter:
    """Navigation + extraction recipe for one provider."""

    waits_for_navigation = True

    def __init__(self, spec: ProviderSpec):
        self.spec = spec

    @property
    def name(self) -> str:
        return self.spec.name

    async def pause(self, page, low_ms: float, high_ms: float, deadline: Deadline):
        delay = random.uniform(low_ms, high_ms)
        await page.wait_for_timeout(deadline.timeout_ms(int(delay)))

    async def submit_query(self, page, query: str, deadline: Deadline) -> None:
        """Navigate, type the query like a person would, and submit it."""
        spec = self.spec
        await page.goto(
            spec.entry_url,
            wait_until="networkidle",
            timeout=deadline.timeout_ms(settings.NAVIGATION_TIMEOUT_MS),
        )
        await self.pause(page, *spec.pre_input_delay_ms, deadline)

        try:
            await page.wait_for_selector(
                spec.query_input,
                timeout=deadline.timeout_ms(settings.QUERY_INPUT_TIMEOUT_MS),
            )
        except PlaywrightTimeoutError as e:
            raise StructureChanged(
                f"Search input not found on {spec.label}", provider=spec.name
            ) from e

        await page.type(spec.query_input, query, delay=random.uniform(*TYPING_DELAY_MS))

        nav_timeout = deadline.timeout_ms(settings.NAVIGATION_TIMEOUT_MS)
        if self.waits_for_navigation:
            async with page.expect_navigation(wait_until="networkidle", timeout=nav_timeout):
                await page.keyboard.press("Enter")
        else:
            await page.keyboard.press("Enter")
            await page.wait_for_load_state("networkidle", timeout=nav_timeout)

        await self.after_submit(page, query, deadline)

    async def after_submit(self, page, query: str, deadline: Deadline) -> None:
        """Provider-specific steps between submission and classification."""

    async def extract(self, page, limit: int | None = None) -> list:
        raise NotImplementedError

    async def _rows(self, page, script: str, selectors, offline_parser) -> list[dict]:
        try:
            return await page.evaluate(script, asdict(selectors))
        except PlaywrightError as e:
            logger.warning(
                f"{self.spec.label}: in-page extraction failed ({e}), "
                "parsing captured HTML instead"
            )
            return offline_parser(await page.content(), selectors)


class WebSearchAdapter(ProviderAdapter):
    async def extract(self, page, limit: int | None = None) -> list[SearchResult]:
        rows = await self._rows(page, _WEB_ROWS_JS, self.spec.web, parse_web_rows)
        return normalize_web_rows(rows, self.spec.origin, limit or WEB_RESULT_LIMIT)

    def parse_html(self, html: str, limit: int | None = None) -> list[SearchResult]:
        rows = parse_web_rows(html, self.spec.web)
        return normalize_web_rows(rows, self.spec.origin, limit or WEB_RESULT_LIMIT)


class ImageSearchAdapter(ProviderAdapter):
    waits_for_navigation = False

    async def humanize(self, page) -> None:
        """Scroll and wiggle the mouse before reading lazy-loaded thumbnails."""
        try:
            await page.evaluate(_HUMAN_SCROLL_JS)
            for _ in range(3):
                await page.mouse.move(random.random() * 300, random.random() * 300)
                await page.wait_for_timeout(random.uniform(100, 300))
        except PlaywrightError as e:
            logger.debug(f"{self.spec.label}: humanized interaction failed: {e}")

    async def extract(self, page, limit: int | None = None) -> list[ImageResult]:
        await self.humanize(page)
        rows = await self._rows(page, _IMAGE_ROWS_JS, self.spec.image, parse_image_rows)
        return normalize_image_rows(rows, self.spec.origin, limit)

    def parse_html(self, html: str, limit: int | None = None) -> list[ImageResult]:
        rows = parse_image_rows(html, self.spec.image)
        return normalize_image_rows(rows, self.spec.origin, limit)


class DuckDuckGoImageAdapter(ImageSearchAdapter):
    """DuckDuckGo lands on web results first; switch to the Images tab."""

    async def after_submit(self, page, query: str, deadline: Deadline) -> None:
        extra = self.spec.extra
        try:
            await page.click(extra["images_tab"], timeout=deadline.timeout_ms(5000))
            await page.wait_for_load_state(
                "networkidle",
                timeout=deadline.timeout_ms(settings.NAVIGATION_TIMEOUT_MS),
            )
        except PlaywrightError:
            logger.info("Images tab link not found, navigating directly")
            await page.goto(
                extra["images_url"].format(query=quote_plus(query)),
                wait_until="networkidle",
                timeout=deadline.timeout_ms(settings.NAVIGATION_TIMEOUT_MS),
            )


def get_adapter(provider: Provider) -> ProviderAdapter:
    spec = get_spec(provider)
    if provider is Provider.DUCKDUCKGO_IMAGE:
        return DuckDuckGoImageAdapter(spec)
    if spec.kind is SearchKind.IMAGE:
        return ImageSearchAdapter(spec)
    return WebSearchAdapter(spec)
