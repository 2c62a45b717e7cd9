import asyncio
import json
import logging
import os
import random
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from relcis.config import settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Realistic fingerprint data, rotated per lease
# ---------------------------------------------------------------------------

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
]

VIEWPORTS = [
    {"width": 1920, "height": 1080},
    {"width": 1366, "height": 768},
    {"width": 1440, "height": 900},
    {"width": 1536, "height": 864},
    {"width": 1280, "height": 720},
]

TIMEZONES = [
    "America/New_York",
    "America/Chicago",
    "America/Los_Angeles",
    "America/Denver",
    "Europe/London",
]

WEBGL_RENDERERS = [
    (
        "Google Inc. (NVIDIA)",
        "ANGLE (NVIDIA, NVIDIA GeForce RTX 3060 Direct3D11 vs_5_0 ps_5_0, D3D11)",
    ),
    (
        "Google Inc. (Intel)",
        "ANGLE (Intel, Intel(R) UHD Graphics 630 Direct3D11 vs_5_0 ps_5_0, D3D11)",
    ),
    (
        "Google Inc. (Intel)",
        "ANGLE (Intel, Intel(R) Iris(R) Xe Graphics Direct3D11 vs_5_0 ps_5_0, D3D11)",
    ),
    (
        "Google Inc. (AMD)",
        "ANGLE (AMD, AMD Radeon RX 580 Direct3D11 vs_5_0 ps_5_0, D3D11)",
    ),
    ("Google Inc. (Apple)", "ANGLE (Apple, Apple M1, OpenGL 4.1)"),
]

DEVICE_SCALE_FACTORS = [1, 2]
LOCALE = "en-US"


@dataclass(frozen=True)
class StealthProfile:
    """Identity attributes applied to a single lease."""

    user_agent: str
    viewport: dict
    device_scale_factor: int
    timezone_id: str
    hardware_concurrency: int
    device_memory: int
    webgl_vendor: str
    webgl_renderer: str
    locale: str = LOCALE
    cookies: tuple = field(default_factory=tuple)

    @property
    def platform(self) -> str:
        if "Win" in self.user_agent:
            return "Win32"
        if "Mac" in self.user_agent:
            return "MacIntel"
        return "Linux x86_64"

    def context_options(self) -> dict:
        """Keyword arguments for ``Browser.new_context``."""
        sec_platform = {
            "Win32": '"Windows"',
            "MacIntel": '"macOS"',
        }.get(self.platform, '"Linux"')
        return dict(
            user_agent=self.user_agent,
            viewport=dict(self.viewport),
            device_scale_factor=self.device_scale_factor,
            locale=self.locale,
            timezone_id=self.timezone_id,
            java_script_enabled=True,
            has_touch=False,
            is_mobile=False,
            color_scheme="light",
            extra_http_headers={
                "Accept-Language": "en-US,en;q=0.9",
                "Sec-Ch-Ua-Mobile": "?0",
                "Sec-Ch-Ua-Platform": sec_platform,
                "Upgrade-Insecure-Requests": "1",
            },
        )

    def init_script(self) -> str:
        return build_init_script(self)


def generate_profile(cookies=()) -> StealthProfile:
    """Pick identity attributes uniformly at random from the curated pools."""
    webgl_vendor, webgl_renderer = random.choice(WEBGL_RENDERERS)
    return StealthProfile(
        user_agent=random.choice(USER_AGENTS),
        viewport=dict(random.choice(VIEWPORTS)),
        device_scale_factor=random.choice(DEVICE_SCALE_FACTORS),
        timezone_id=random.choice(TIMEZONES),
        hardware_concurrency=random.choice([4, 8, 12, 16]),
        device_memory=random.choice([4, 8, 16]),
        webgl_vendor=webgl_vendor,
        webgl_renderer=webgl_renderer,
        cookies=tuple(cookies),
    )


def build_init_script(profile: StealthProfile) -> str:
    """Navigator/WebGL patches consistent with the profile's user agent."""
    return f"""
Object.defineProperty(navigator, 'webdriver', {{ get: () => false }});
delete navigator.__proto__.webdriver;
Object.defineProperty(navigator, 'languages', {{ get: () => ['en-US', 'en'] }});
Object.defineProperty(navigator, 'platform', {{ get: () => '{profile.platform}' }});
Object.defineProperty(navigator, 'hardwareConcurrency', {{ get: () => {profile.hardware_concurrency} }});
Object.defineProperty(navigator, 'deviceMemory', {{ get: () => {profile.device_memory} }});

window.chrome = window.chrome || {{
    runtime: {{ connect: function() {{}}, sendMessage: function() {{}}, id: undefined }},
    loadTimes: function() {{ return {{}}; }},
    csi: function() {{ return {{}}; }},
}};

const fakePlugins = [
    {{ name: 'Chrome PDF Plugin', filename: 'internal-pdf-viewer', description: 'Portable Document Format' }},
    {{ name: 'Chrome PDF Viewer', filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai', description: '' }},
    {{ name: 'Native Client', filename: 'internal-nacl-plugin', description: '' }},
];
Object.defineProperty(navigator, 'plugins', {{ get: () => fakePlugins }});

const patchWebGL = (proto) => {{
    if (!proto) return;
    const orig = proto.getParameter;
    proto.getParameter = function(param) {{
        if (param === 37445) return '{profile.webgl_vendor}';
        if (param === 37446) return '{profile.webgl_renderer}';
        return orig.call(this, param);
    }};
}};
patchWebGL(window.WebGLRenderingContext && WebGLRenderingContext.prototype);
patchWebGL(window.WebGL2RenderingContext && WebGL2RenderingContext.prototype);

Object.defineProperty(document, 'hidden', {{ get: () => false }});
Object.defineProperty(document, 'visibilityState', {{ get: () => 'visible' }});
"""


# ---------------------------------------------------------------------------
# Persisted cookie jar (shared across providers, best-effort)
# ---------------------------------------------------------------------------


class CookieStore:
    """JSON cookie jar on local disk.

    Load and save never raise. Writes are serialized by an in-process lock
    and land via atomic rename; separate processes still race
    (last writer wins).
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock: asyncio.Lock | None = None
        self._loop = None

    def _get_lock(self) -> asyncio.Lock:
        current_loop = asyncio.get_running_loop()
        if self._lock is None or self._loop is not current_loop:
            self._lock = asyncio.Lock()
            self._loop = current_loop
        return self._lock

    def _read(self) -> list[dict]:
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, list):
            raise ValueError("cookie jar is not a list")
        return [c for c in data if isinstance(c, dict) and c.get("name")]

    def _write(self, cookies: list[dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(cookies, fh)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    async def load(self) -> list[dict]:
        if not self.path.exists():
            return []
        try:
            async with self._get_lock():
                loop = asyncio.get_running_loop()
                return await loop.run_in_executor(None, self._read)
        except Exception as e:
            logger.debug(f"Cookie jar load failed ({self.path}): {e}")
            return []

    async def save(self, cookies: list[dict]) -> None:
        try:
            async with self._get_lock():
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, self._write, list(cookies))
            logger.debug(f"Saved {len(cookies)} cookies to {self.path}")
        except Exception as e:
            logger.warning(f"Cookie jar save failed ({self.path}): {e}")


cookie_store = CookieStore(settings.COOKIE_STORE_PATH)
