"""Debug snapshots captured when a provider exhausts its retries."""

import asyncio
import logging
import time
from pathlib import Path

from relcis.config import settings

logger = logging.getLogger(__name__)


def snapshot_paths(provider: str, retries: int, base_dir: str | Path | None = None):
    base = Path(base_dir or settings.DEBUG_SNAPSHOT_DIR)
    stem = f"debug_{provider}_retry_{retries}_{int(time.time() * 1000)}"
    return base / f"{stem}.png", base / f"{stem}.html"


async def capture_debug_snapshot(
    page, provider: str, retries: int, base_dir: str | Path | None = None
) -> tuple[Path, Path] | None:
    """Write a full-page screenshot and the page HTML for post-mortem review.

    Never raises: a failed snapshot must not mask the provider's own error.
    """
    png_path, html_path = snapshot_paths(provider, retries, base_dir)
    try:
        png_path.parent.mkdir(parents=True, exist_ok=True)
        await page.screenshot(path=str(png_path), full_page=True)
        html = await page.content()
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, html_path.write_text, html, "utf-8")
    except Exception as e:
        logger.debug(f"Debug snapshot for {provider} failed: {e}")
        return None

    logger.info(f"Saved debug snapshot for {provider}: {png_path.name}")
    return png_path, html_path
