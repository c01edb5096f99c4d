"""
Third-party scraping API backend (Firecrawl).

Upstream failures are split into categories for operators:
401 -> invalid credential, 402/429 -> rate limit or quota, else upstream.
"""

from __future__ import annotations

import httpx

from app.core.config import get_settings
from app.engines.base import ScrapeErrorKind, ScrapeResult, ScraperType
from app.engines.scrapers.base import ScrapeBackend

settings = get_settings()


class FirecrawlBackend(ScrapeBackend):

    SCRAPER_TYPE = ScraperType.API

    SCRAPE_PATH = "/v1/scrape"

    def __init__(
        self,
        api_key: str,
        base_url: str = settings.FIRECRAWL_API_URL,
        timeout: float = settings.FIRECRAWL_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        if not api_key:
            raise ValueError("An API key is required for the scraping API backend")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )

    async def fetch(self, url: str) -> ScrapeResult:
        if self._client is None:
            await self.start()

        try:
            response = await self._client.post(
                self.SCRAPE_PATH,
                json={"url": url, "formats": ["html"], "onlyMainContent": False},
            )
        except httpx.HTTPError as e:
            self.logger.warning("Scraping API request failed", url=url, error=str(e))
            return ScrapeResult.failure(url, ScrapeErrorKind.UPSTREAM, str(e) or type(e).__name__)

        if response.status_code == 401:
            self.logger.warning("Scraping API rejected credential", url=url)
            return ScrapeResult.failure(url, ScrapeErrorKind.INVALID_CREDENTIAL, "Invalid scraping API key")
        if response.status_code in (402, 429):
            self.logger.warning("Scraping API quota exceeded", url=url, status=response.status_code)
            return ScrapeResult.failure(url, ScrapeErrorKind.QUOTA_EXCEEDED, "Rate limit or quota exceeded")
        if response.is_error:
            detail = self._error_message(response)
            self.logger.warning("Scraping API error", url=url, status=response.status_code, detail=detail)
            return ScrapeResult.failure(url, ScrapeErrorKind.UPSTREAM, f"API error ({response.status_code}): {detail}")

        try:
            data = response.json().get("data") or {}
        except (ValueError, AttributeError):
            return ScrapeResult.failure(url, ScrapeErrorKind.UPSTREAM, "Malformed API response")

        html = data.get("html") or ""
        title = (data.get("metadata") or {}).get("title") or ""
        if not html.strip():
            return ScrapeResult.failure(url, ScrapeErrorKind.EMPTY_CONTENT)
        return ScrapeResult(url=url, html=html, title=title)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.reason_phrase
        if isinstance(body, dict):
            return str(body.get("error") or body.get("message") or response.reason_phrase)
        return response.reason_phrase
