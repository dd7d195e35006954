# flyer_pipeline/delegates/web_scraper_delegate.py
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from ..errors import RenderError
from ..models import ImageInfo, RenderedDocument

logger = logging.getLogger(__name__)

# Collects every <img> with its rendered size so the locator can rank them without a second round trip.
IMAGE_MEASURE_SCRIPT = """
() => Array.from(document.images).map(img => {
    const rect = img.getBoundingClientRect();
    return {
        src: img.currentSrc || img.src || img.getAttribute('data-src') || '',
        width: rect.width || img.width || 0,
        height: rect.height || img.height || 0,
    };
})
"""


class WebScraperDelegate:
    """
    Renders catalog pages in a single headless Chromium session. The one page
    object is reused for every navigation, so only one render may be in flight.
    """
    def __init__(
        self,
        user_agent: str,
        viewport: Dict,
        timeout_ms: int,
        network_idle_timeout_ms: int,
        har_output_path: Optional[Path] = None,
    ):
        self.user_agent = user_agent
        self.viewport = viewport
        self.timeout_ms = timeout_ms
        self.network_idle_timeout_ms = network_idle_timeout_ms
        self.har_output_path = har_output_path
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    async def __aenter__(self):
        logger.debug("Starting Playwright and launching browser...")
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=True)

        context_options: Dict[str, Any] = {"user_agent": self.user_agent, "viewport": self.viewport}
        if self.har_output_path:
            logger.debug("Enabling HAR recording to: %s", self.har_output_path)
            context_options.update(record_har_path=self.har_output_path, record_har_mode="full")
        self._context = await self._browser.new_context(**context_options)
        self._page = await self._context.new_page()
        logger.debug("Playwright browser launched and rendering page opened.")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        logger.debug("Closing browser, context, and stopping Playwright...")
        if self._context:
            await self._context.close()  # This will finalize the HAR file
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()
        logger.debug("Playwright resources released.")

    async def render(self, url: str, settle_delay_ms: int) -> RenderedDocument:
        """
        Navigates to `url`, lets client-side rendering settle and returns the HTML
        together with the measured images. Raises RenderError on any browser failure.
        """
        if not self._page:
            raise RenderError(url, "browser session not started")

        try:
            logger.debug("Navigating to %s", url)
            await self._page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)
            try:
                await self._page.wait_for_load_state("networkidle", timeout=self.network_idle_timeout_ms)
            except PlaywrightTimeoutError:
                # Pages with polling or analytics never go idle; the settle delay still applies.
                logger.debug("Network did not go idle on %s, continuing after settle delay.", url)
            if settle_delay_ms > 0:
                await self._page.wait_for_timeout(settle_delay_ms)

            html_content = await self._page.content()
            images = await self.measure_images()
        except PlaywrightError as e:
            raise RenderError(url, str(e).splitlines()[0] if str(e) else type(e).__name__) from e

        logger.debug("Rendered %s (%d chars of HTML, %d images)", url, len(html_content), len(images))
        return RenderedDocument(url=self._page.url or url, html=html_content, images=images)

    async def evaluate(self, script: str) -> Any:
        """Runs `script` against the currently rendered page."""
        if not self._page:
            raise RenderError("about:blank", "browser session not started")
        return await self._page.evaluate(script)

    async def measure_images(self) -> List[ImageInfo]:
        """Returns every image on the current page with its rendered size."""
        raw_images = await self.evaluate(IMAGE_MEASURE_SCRIPT)
        return [
            ImageInfo(src=item.get("src", ""), width=float(item.get("width") or 0), height=float(item.get("height") or 0))
            for item in raw_images or []
        ]
