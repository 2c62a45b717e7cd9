"""Tests for provider adapters: DOM mapping, normalization and query submission."""

import pytest
from playwright.async_api import Error as PlaywrightError

from relcis.core.deadline import Deadline
from relcis.core.exceptions import StructureChanged
from relcis.services.adapters import (
    DuckDuckGoImageAdapter,
    ImageSearchAdapter,
    WebSearchAdapter,
    absolutize,
    get_adapter,
    normalize_web_rows,
    parse_dimensions,
)
from relcis.services.providers import Provider, get_spec
from tests.fakes import FakePage

BING_HTML = """
<html><body><ol id="b_results">
  <li class="b_algo"><h2><a href="https://one.example/">First result</a></h2>
    <div class="b_caption"><p>First description</p></div></li>
  <li class="b_algo"><h2><a href="https://two.example/">Second result</a></h2>
    <div class="b_caption"><p>Second description</p></div></li>
  <li class="b_algo"><h2><a href="https://three.example/">Third result</a></h2></li>
  <li class="b_algo"><h2><a href="https://four.example/">Fourth result</a></h2>
    <div class="b_caption"><p>Fourth description</p></div></li>
  <li class="b_algo"><h2><a href="https://five.example/">Fifth result</a></h2>
    <div class="b_caption"><p>Fifth description</p></div></li>
</ol></body></html>
"""

YAHOO_HTML = """
<html><body>
  <div class="algo-sr"><h3><a>No link here</a></h3><div class="compText">skip</div></div>
  <div class="algo-sr"><h3><a href="https://a.example/">Alpha</a></h3>
    <div class="compText"><p>Alpha text</p></div></div>
  <div class="algo-sr"><h3><a href="/r?u=beta">Beta</a></h3>
    <div class="compText"><p>Beta text</p></div></div>
</body></html>
"""

DDG_HTML = """
<html><body>
  <article><h2><a href="https://x.example/"><span class="EKtkFWMYpwzMKOYr0GYm">X title</span></a></h2>
    <div class="OgdwYG6KE2qthn9XQWFC">X snippet</div></article>
  <article><h2><a href="https://y.example/">untitled</a></h2></article>
  <article><h2><a href="https://z.example/"><span class="EKtkFWMYpwzMKOYr0GYm">Z title</span></a></h2></article>
</body></html>
"""

DDG_IMAGES_HTML = """
<html><body>
  <figure class="nsogf_Hpj9UUxfhcwQd5">
    <div><img src="//external-content.duckduckgo.com/iu/?u=panda.jpg"><p>758 × 1053</p></div>
    <figcaption><p><span>Red panda</span></p><p><span>wikipedia.org</span></p></figcaption>
    <a href="https://en.wikipedia.org/wiki/Red_panda">source</a>
  </figure>
  <figure class="nsogf_Hpj9UUxfhcwQd5">
    <div><p>no image</p></div>
  </figure>
</body></html>
"""


class TestNormalization:
    def test_absolutize(self):
        origin = "https://www.bing.com"
        assert absolutize("/url?q=x", origin) == "https://www.bing.com/url?q=x"
        assert absolutize("//cdn.example.com/a.jpg", origin) == "https://cdn.example.com/a.jpg"
        assert absolutize("https://other.example/", origin) == "https://other.example/"
        assert absolutize("", origin) == ""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("758 × 1053", (758, 1053)),
            ("1,920x1,080", (1920, 1080)),
            ("640 X 480 px", (640, 480)),
            ("n/a", (None, None)),
            (None, (None, None)),
        ],
    )
    def test_parse_dimensions(self, text, expected):
        assert parse_dimensions(text) == expected

    def test_rows_without_title_or_url_are_dropped_before_capping(self):
        rows = [
            {"title": "a", "url": "https://a.example"},
            {"title": None, "url": "https://b.example"},
            {"title": "c", "url": ""},
            {"title": "d", "url": "https://d.example", "description": "  desc  "},
            {"title": "e", "url": "https://e.example"},
            {"title": "f", "url": "https://f.example"},
        ]
        results = normalize_web_rows(rows, "https://search.yahoo.com")
        assert [r.title for r in results] == ["a", "d", "e"]
        assert results[0].description == ""
        assert results[1].description == "desc"


class TestWebExtraction:
    def test_bing_caps_at_three_in_document_order(self):
        adapter = get_adapter(Provider.BING_WEB)
        results = adapter.parse_html(BING_HTML)
        assert [r.title for r in results] == ["First result", "Second result", "Third result"]
        assert results[0].url == "https://one.example/"
        assert results[0].description == "First description"
        # Missing description defaults to empty
        assert results[2].description == ""

    def test_yahoo_skips_linkless_rows_and_resolves_relative_urls(self):
        results = get_adapter(Provider.YAHOO_WEB).parse_html(YAHOO_HTML)
        assert [r.title for r in results] == ["Alpha", "Beta"]
        assert results[1].url == "https://search.yahoo.com/r?u=beta"
        assert results[0].description == "Alpha text"

    def test_duckduckgo_requires_title_element(self):
        results = get_adapter(Provider.DUCKDUCKGO_WEB).parse_html(DDG_HTML)
        assert [r.url for r in results] == ["https://x.example/", "https://z.example/"]
        assert results[0].description == "X snippet"

    @pytest.mark.asyncio
    async def test_extract_uses_in_page_rows(self):
        rows = [
            {"title": "In page", "url": "https://p.example/", "description": "d"},
        ]
        adapter = get_adapter(Provider.BING_WEB)
        results = await adapter.extract(FakePage(rows=rows))
        assert results[0].title == "In page"

    @pytest.mark.asyncio
    async def test_extract_falls_back_to_captured_html(self):
        page = FakePage(
            html=BING_HTML,
            evaluate_error=PlaywrightError("Execution context was destroyed"),
        )
        results = await get_adapter(Provider.BING_WEB).extract(page)
        assert len(results) == 3


class TestImageExtraction:
    def test_duckduckgo_image_fields(self):
        adapter = get_adapter(Provider.DUCKDUCKGO_IMAGE)
        results = adapter.parse_html(DDG_IMAGES_HTML)
        assert len(results) == 1
        image = results[0]
        assert image.image_url == "https://external-content.duckduckgo.com/iu/?u=panda.jpg"
        assert image.thumbnail_url == image.image_url
        assert image.title == "Red panda"
        assert image.source_name == "wikipedia.org"
        assert image.source_url == "https://en.wikipedia.org/wiki/Red_panda"
        assert (image.width, image.height) == (758, 1053)
        assert image.persisted_url is None

    def test_yahoo_prefers_lazy_src(self):
        html = """
        <ul><li class="ld"><a href="/images/view?id=1">
            <img data-src="https://s.yimg.com/full.jpg" src="data:image/gif;base64,R0lGOD">
            <span class="title">Yahoo panda</span></a></li></ul>
        """
        results = get_adapter(Provider.YAHOO_IMAGE).parse_html(html, limit=1)
        assert results[0].image_url == "https://s.yimg.com/full.jpg"
        assert results[0].title == "Yahoo panda"
        assert results[0].source_url == "https://images.search.yahoo.com/images/view?id=1"


class TestSubmitQuery:
    def test_get_adapter_kinds(self):
        assert isinstance(get_adapter(Provider.DUCKDUCKGO_IMAGE), DuckDuckGoImageAdapter)
        assert isinstance(get_adapter(Provider.YAHOO_IMAGE), ImageSearchAdapter)
        assert isinstance(get_adapter(Provider.GOOGLE_WEB), WebSearchAdapter)

    @pytest.mark.asyncio
    async def test_types_query_and_presses_enter(self):
        spec = get_spec(Provider.BING_WEB)
        page = FakePage(present={spec.query_input})
        await get_adapter(Provider.BING_WEB).submit_query(page, "hello world", Deadline(60))
        assert page.visited == ["https://www.bing.com"]
        assert page.typed == [("input[name='q']", "hello world")]
        assert page.keyboard.pressed == ["Enter"]

    @pytest.mark.asyncio
    async def test_missing_input_is_structure_change(self):
        page = FakePage(present=set())
        with pytest.raises(StructureChanged, match="Search input not found on Yahoo"):
            await get_adapter(Provider.YAHOO_WEB).submit_query(page, "hello", Deadline(60))

    @pytest.mark.asyncio
    async def test_duckduckgo_images_falls_back_to_direct_url(self):
        spec = get_spec(Provider.DUCKDUCKGO_IMAGE)

        class NoTabPage(FakePage):
            async def click(self, selector, timeout=None):
                raise PlaywrightError("element not found")

        page = NoTabPage(present={spec.query_input})
        await get_adapter(Provider.DUCKDUCKGO_IMAGE).submit_query(page, "red panda", Deadline(60))
        assert page.visited[-1] == "https://duckduckgo.com/?q=red+panda&iax=images&ia=images"
