"""Test doubles: a scriptable Playwright page, leases, storage and adapters."""

from contextlib import asynccontextmanager
from dataclasses import replace

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from relcis.services.orchestrator import RetryPolicy
from relcis.services.providers import get_spec


class FakeKeyboard:
    def __init__(self):
        self.pressed: list[str] = []

    async def press(self, key: str):
        self.pressed.append(key)


class FakeMouse:
    async def move(self, x, y):
        pass


class FakePage:
    """Minimal stand-in for a Playwright page.

    ``present`` is the set of selectors currently in the DOM. A selector race
    ("a, b, c") resolves when any member is present and times out otherwise.
    """

    def __init__(self, present=(), html="<html></html>", rows=None, evaluate_error=None):
        self.present = set(present)
        self.html = html
        self.rows = rows
        self.evaluate_error = evaluate_error
        self.keyboard = FakeKeyboard()
        self.mouse = FakeMouse()
        self.on_navigate = None
        self.visited: list[str] = []
        self.typed: list[tuple[str, str]] = []
        self.reloads = 0
        self.closed = False
        self.goto_error = None

    async def goto(self, url, wait_until=None, timeout=None):
        if self.goto_error is not None:
            raise self.goto_error
        self.visited.append(url)

    async def reload(self, wait_until=None, timeout=None):
        self.reloads += 1
        if self.on_navigate is not None:
            self.on_navigate(self)

    async def wait_for_selector(self, selector, timeout=None, state=None):
        candidates = [s.strip() for s in selector.split(",")]
        if any(c in self.present for c in candidates):
            return object()
        raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")

    async def query_selector(self, selector):
        return object() if selector in self.present else None

    async def type(self, selector, text, delay=None):
        self.typed.append((selector, text))

    @asynccontextmanager
    async def expect_navigation(self, wait_until=None, timeout=None):
        yield

    async def wait_for_load_state(self, state=None, timeout=None):
        pass

    async def wait_for_timeout(self, timeout):
        pass

    async def click(self, selector, timeout=None):
        self.visited.append(f"click:{selector}")

    async def evaluate(self, script, arg=None):
        if self.evaluate_error is not None:
            raise self.evaluate_error
        return self.rows if arg is not None else None

    async def content(self):
        return self.html

    async def screenshot(self, path=None, full_page=False, type=None):
        return b"\x89PNG fake"

    def set_default_navigation_timeout(self, timeout):
        pass

    async def close(self):
        self.closed = True


class FakeLease:
    def __init__(self, page, profile):
        self.page = page
        self.profile = profile

    async def cookies(self):
        return [{"name": "session", "value": "abc", "domain": ".example.com", "path": "/"}]


class FakeSessionManager:
    """Hands out FakePage leases; optionally fails admission with ``fail_with``."""

    def __init__(self, page_factory=FakePage, fail_with=None):
        self.page_factory = page_factory
        self.fail_with = fail_with
        self.pages: list[FakePage] = []
        self.profiles = []
        self.released = 0

    @asynccontextmanager
    async def lease(self, profile, deadline=None):
        if self.fail_with is not None:
            raise self.fail_with
        page = self.page_factory()
        self.pages.append(page)
        self.profiles.append(profile)
        try:
            yield FakeLease(page, profile)
        finally:
            self.released += 1


class FakeArtifactStore:
    """Records uploads and returns CDN-style URLs."""

    def __init__(self, mirror_fails=False):
        self.mirror_fails = mirror_fails
        self.uploads: list[tuple[str, str]] = []

    async def upload_screenshot(self, png, context):
        self.uploads.append(("screenshots", context))
        return f"https://cdn.example.com/screenshots/{context}.png"

    async def upload_html(self, html, context):
        self.uploads.append(("searchedHTML", context))
        return f"https://cdn.example.com/searchedHTML/{context}.html"

    async def mirror_results(self, results, query):
        if self.mirror_fails:
            return list(results)
        return [
            replace(r, persisted_url=f"https://cdn.example.com/searchedImages/{i}.jpg")
            for i, r in enumerate(results)
        ]


class ScriptedAdapter:
    """Adapter stand-in driven by a list of page states, one per navigation.

    States: "results", "blocked", "both", "empty", or an exception instance
    raised from the navigation. The last state repeats once the list runs out.
    """

    def __init__(self, provider, states, results=()):
        self.spec = get_spec(provider)
        self.states = list(states)
        self.results = list(results)
        self.submits = 0
        self.navigations = 0

    @property
    def name(self):
        return self.spec.name

    def _next_state(self):
        return self.states.pop(0) if len(self.states) > 1 else self.states[0]

    def _apply(self, page):
        self.navigations += 1
        state = self._next_state()
        if isinstance(state, Exception):
            raise state
        result_sel = self.spec.result_selectors[0]
        block_sel = self.spec.all_block_selectors[0]
        page.present = {
            "results": {result_sel},
            "blocked": {block_sel},
            "both": {result_sel, block_sel},
            "empty": set(),
        }[state]

    async def submit_query(self, page, query, deadline):
        self.submits += 1
        page.on_navigate = self._apply
        self._apply(page)

    async def extract(self, page, limit=None):
        return self.results[: limit or 3]


NO_DELAY = RetryPolicy(
    max_retries=3, base_delay=0, jitter=0, blocked_base_delay=0, blocked_jitter=0
)
