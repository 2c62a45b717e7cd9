"""Unit tests for relcis.services.detection — result/block page classification."""

import pytest

from relcis.services.detection import PageState, classify
from relcis.services.providers import GENERIC_BLOCK_SELECTORS, PROVIDERS, Provider, get_spec
from tests.fakes import FakePage

ALL_PROVIDERS = list(PROVIDERS)


class TestClassify:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("provider", ALL_PROVIDERS, ids=lambda p: p.value)
    async def test_results_only_is_results_present(self, provider):
        spec = get_spec(provider)
        page = FakePage(present={spec.result_selectors[0]})
        assert await classify(page, spec, timeout_ms=10) is PageState.RESULTS_PRESENT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("provider", ALL_PROVIDERS, ids=lambda p: p.value)
    async def test_block_marker_wins_over_results(self, provider):
        """A page showing results and a challenge at once is BLOCKED."""
        spec = get_spec(provider)
        page = FakePage(present={spec.result_selectors[0], spec.block_selectors[0]})
        assert await classify(page, spec, timeout_ms=10) is PageState.BLOCKED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("marker", GENERIC_BLOCK_SELECTORS)
    async def test_generic_captcha_markers_block_every_provider(self, marker):
        spec = get_spec(Provider.BING_WEB)
        page = FakePage(present={marker})
        assert await classify(page, spec, timeout_ms=10) is PageState.BLOCKED

    @pytest.mark.asyncio
    async def test_nothing_appears_is_indeterminate(self):
        spec = get_spec(Provider.YAHOO_WEB)
        page = FakePage(present={"div.unrelated"})
        assert await classify(page, spec, timeout_ms=10) is PageState.INDETERMINATE

    @pytest.mark.asyncio
    async def test_other_page_errors_propagate(self):
        from playwright.async_api import Error as PlaywrightError

        class ClosedPage(FakePage):
            async def wait_for_selector(self, selector, timeout=None, state=None):
                raise PlaywrightError("Target page, context or browser has been closed")

        with pytest.raises(PlaywrightError):
            await classify(ClosedPage(), get_spec(Provider.BING_WEB), timeout_ms=10)
