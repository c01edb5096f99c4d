"""
Headless browser backend (Playwright / Chromium).

One browser is launched per analysis and shared by every fetch in it;
each fetch gets its own page, closed when the fetch ends.
"""

from __future__ import annotations

from playwright.async_api import Browser, Page, Playwright, async_playwright

from app.core.config import get_settings
from app.engines.base import ScrapeErrorKind, ScrapeResult, ScraperType
from app.engines.scrapers.base import ScrapeBackend

settings = get_settings()


class HeadlessBrowserBackend(ScrapeBackend):

    SCRAPER_TYPE = ScraperType.HEADLESS

    BLOCKED_RESOURCES = "**/*.{png,jpg,jpeg,gif,webp,svg,ico,woff,woff2,mp4,mp3}"

    def __init__(
        self,
        navigation_timeout_ms: int = settings.HEADLESS_NAVIGATION_TIMEOUT_MS,
        user_agent: str = settings.CRAWLER_USER_AGENT,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.navigation_timeout_ms = navigation_timeout_ms
        self.user_agent = user_agent
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    async def start(self) -> None:
        if self._browser is not None:
            return
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=True,
                args=["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"],
            )
        except Exception:
            await self._playwright.stop()
            self._playwright = None
            raise
        self.logger.info("Browser launched")

    async def fetch(self, url: str) -> ScrapeResult:
        if self._browser is None:
            return ScrapeResult.failure(url, ScrapeErrorKind.NAVIGATION, "Browser session is not started")

        page: Page | None = None
        try:
            page = await self._browser.new_page(user_agent=self.user_agent)
            await page.route(self.BLOCKED_RESOURCES, lambda route: route.abort())
            response = await page.goto(url, wait_until="networkidle", timeout=self.navigation_timeout_ms)

            if response is not None and response.status >= 400:
                # Error pages are still scored as rendered
                self.logger.warning("Page answered with error status", url=url, status=response.status)

            html = await page.content()
            title = await page.title()
            if not html.strip():
                return ScrapeResult.failure(url, ScrapeErrorKind.EMPTY_CONTENT)
            return ScrapeResult(url=url, html=html, title=title)

        except Exception as e:
            self.logger.warning("Browser fetch failed", url=url, error=str(e))
            return ScrapeResult.failure(url, ScrapeErrorKind.NAVIGATION, str(e))
        finally:
            if page is not None:
                try:
                    await page.close()
                except Exception as e:
                    self.logger.debug("Page close failed", url=url, error=str(e))

    async def close(self) -> None:
        browser, pw = self._browser, self._playwright
        self._browser = None
        self._playwright = None
        try:
            if browser is not None:
                await browser.close()
                self.logger.info("Browser closed")
        finally:
            if pw is not None:
                await pw.stop()
