"""Block/completion detection for provider result pages.

After navigation the detector waits for the first of the provider's result
selectors, its block selectors or a generic CAPTCHA marker. Block indicators
always win: a page that shows results *and* a challenge is BLOCKED.
"""

import logging
from enum import Enum

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from relcis.config import settings
from relcis.services.providers import ProviderSpec

logger = logging.getLogger(__name__)


class PageState(str, Enum):
    RESULTS_PRESENT = "results_present"
    BLOCKED = "blocked"
    INDETERMINATE = "indeterminate"


async def _any_present(page, selectors) -> bool:
    for selector in selectors:
        if await page.query_selector(selector) is not None:
            return True
    return False


async def classify(page, spec: ProviderSpec, timeout_ms: int | None = None) -> PageState:
    """Classify the current page for ``spec``.

    A timed-out wait is INDETERMINATE, which callers treat as recoverable.
    Other page errors (closed page, destroyed context) propagate.
    """
    if timeout_ms is None:
        timeout_ms = settings.DETECTION_TIMEOUT_MS

    block_selectors = spec.all_block_selectors
    race = ", ".join(spec.result_selectors + block_selectors)
    try:
        await page.wait_for_selector(race, timeout=timeout_ms, state="attached")
    except PlaywrightTimeoutError:
        logger.debug(f"{spec.label}: no result or block marker within {timeout_ms}ms")
        return PageState.INDETERMINATE

    if await _any_present(page, block_selectors):
        return PageState.BLOCKED
    if await _any_present(page, spec.result_selectors):
        return PageState.RESULTS_PRESENT
    return PageState.INDETERMINATE
