"""Provider registry — one navigation/extraction recipe per search surface.

Selectors here track each provider's live markup and are the first thing
to update when a provider starts returning STRUCTURE failures.
"""

from dataclasses import dataclass, field
from enum import Enum


class SearchKind(str, Enum):
    WEB = "web"
    IMAGE = "image"


class Provider(str, Enum):
    GOOGLE_WEB = "google"
    BING_WEB = "bing"
    YAHOO_WEB = "yahoo"
    DUCKDUCKGO_WEB = "duckduckgo"
    YAHOO_IMAGE = "yahoo_images"
    DUCKDUCKGO_IMAGE = "duckduckgo_images"


# Generic CAPTCHA / anti-bot challenge markers, checked for every provider
GENERIC_BLOCK_SELECTORS = (
    "#captcha-form",
    ".rc-anchor-content",
    'iframe[src*="recaptcha"]',
    'iframe[src*="hcaptcha.com"]',
    'iframe[src*="challenges.cloudflare.com"]',
)


@dataclass(frozen=True)
class WebSelectors:
    """DOM mapping for a web-search result list.

    ``item`` matches the result link; ``title`` is looked up inside it (None
    means the link text itself); ``description`` is looked up inside the
    item's closest ``container``.
    """

    item: str
    title: str | None
    container: str
    description: str


@dataclass(frozen=True)
class ImageSelectors:
    item: str
    image: str = "img"
    image_attrs: tuple = ("src",)
    thumbnail_attr: str = "src"
    link: str = "a"
    title: str | None = None
    source_name: str | None = None
    dimensions: str | None = None


@dataclass(frozen=True)
class ProviderSpec:
    provider: Provider
    kind: SearchKind
    label: str
    entry_url: str
    origin: str
    query_input: str
    result_selectors: tuple
    block_selectors: tuple = ()
    web: WebSelectors | None = None
    image: ImageSelectors | None = None
    pre_input_delay_ms: tuple = (1000, 3000)
    extra: dict = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.provider.value

    @property
    def all_block_selectors(self) -> tuple:
        return self.block_selectors + GENERIC_BLOCK_SELECTORS


PROVIDERS: dict[Provider, ProviderSpec] = {
    Provider.GOOGLE_WEB: ProviderSpec(
        provider=Provider.GOOGLE_WEB,
        kind=SearchKind.WEB,
        label="Google",
        entry_url="https://www.google.com",
        origin="https://www.google.com",
        query_input="textarea[name='q']",
        result_selectors=('div.MjjYud a[jsname="UWckNb"]',),
        block_selectors=("#recaptcha", "form#captcha-form", "div#infoDiv"),
        web=WebSelectors(
            item='div.MjjYud a[jsname="UWckNb"]',
            title="h3",
            container="div.MjjYud",
            description="div[data-sncf='1'] span:last-child",
        ),
    ),
    Provider.BING_WEB: ProviderSpec(
        provider=Provider.BING_WEB,
        kind=SearchKind.WEB,
        label="Bing",
        entry_url="https://www.bing.com",
        origin="https://www.bing.com",
        query_input="input[name='q']",
        result_selectors=("li.b_algo h2 a",),
        block_selectors=("#b_captcha", ".captcha", "#turingChallenge"),
        web=WebSelectors(
            item="li.b_algo h2 a",
            title=None,
            container="li.b_algo",
            description=".b_caption p",
        ),
    ),
    Provider.YAHOO_WEB: ProviderSpec(
        provider=Provider.YAHOO_WEB,
        kind=SearchKind.WEB,
        label="Yahoo",
        entry_url="https://search.yahoo.com",
        origin="https://search.yahoo.com",
        query_input="input[name='p']",
        result_selectors=(".algo-sr a",),
        block_selectors=("#captcha", "form[action*='captcha']"),
        web=WebSelectors(
            item=".algo-sr h3 a",
            title=None,
            container=".algo-sr",
            description=".compText",
        ),
    ),
    Provider.DUCKDUCKGO_WEB: ProviderSpec(
        provider=Provider.DUCKDUCKGO_WEB,
        kind=SearchKind.WEB,
        label="DuckDuckGo",
        entry_url="https://duckduckgo.com",
        origin="https://duckduckgo.com",
        query_input="input[name='q']",
        result_selectors=("article h2 a .EKtkFWMYpwzMKOYr0GYm",),
        block_selectors=(".anomaly-modal__modal", "#challenge-form"),
        web=WebSelectors(
            item="article h2 a",
            title=".EKtkFWMYpwzMKOYr0GYm",
            container="article",
            description=".OgdwYG6KE2qthn9XQWFC",
        ),
    ),
    Provider.YAHOO_IMAGE: ProviderSpec(
        provider=Provider.YAHOO_IMAGE,
        kind=SearchKind.IMAGE,
        label="Yahoo Images",
        entry_url="https://images.search.yahoo.com",
        origin="https://images.search.yahoo.com",
        query_input="input[type='text']",
        result_selectors=(".ld",),
        block_selectors=("#captcha", "form[action*='captcha']"),
        image=ImageSelectors(
            item=".ld",
            image_attrs=("data-src", "src"),
            title=".title",
            source_name="a",
        ),
        pre_input_delay_ms=(1000, 2000),
    ),
    Provider.DUCKDUCKGO_IMAGE: ProviderSpec(
        provider=Provider.DUCKDUCKGO_IMAGE,
        kind=SearchKind.IMAGE,
        label="DuckDuckGo Images",
        entry_url="https://duckduckgo.com",
        origin="https://duckduckgo.com",
        query_input="input[name='q']",
        result_selectors=("figure.nsogf_Hpj9UUxfhcwQd5 img", "figure img"),
        block_selectors=(".anomaly-modal__modal", "#challenge-form"),
        image=ImageSelectors(
            item="figure.nsogf_Hpj9UUxfhcwQd5, figure",
            title="figcaption p span",
            source_name="figcaption p:last-child span",
            dimensions="div p",
        ),
        pre_input_delay_ms=(500, 1500),
        extra={
            "images_tab": 'a[data-zci-link="images"]',
            "images_url": "https://duckduckgo.com/?q={query}&iax=images&ia=images",
        },
    ),
}

WEB_PROVIDERS_BY_NAME = {
    spec.name: spec.provider
    for spec in PROVIDERS.values()
    if spec.kind is SearchKind.WEB
}

IMAGE_ENGINES = {
    "yahoo": Provider.YAHOO_IMAGE,
    "duckduckgo": Provider.DUCKDUCKGO_IMAGE,
}


def get_spec(provider: Provider) -> ProviderSpec:
    return PROVIDERS[provider]


def resolve_web_chain(names: list[str]) -> list[Provider]:
    """Map configured provider names to providers, ignoring unknown names."""
    chain = []
    for name in names:
        provider = WEB_PROVIDERS_BY_NAME.get(name.strip().lower())
        if provider is not None:
            chain.append(provider)
    return chain
