"""Backend selection by scraper type."""

from app.engines.base import ScraperType
from app.engines.scrapers.api import FirecrawlBackend
from app.engines.scrapers.base import ScrapeBackend
from app.engines.scrapers.headless import HeadlessBrowserBackend


def create_scrape_backend(scraper_type: ScraperType, credential: str | None = None, **kwargs) -> ScrapeBackend:
    """Build an unstarted backend. Raises ValueError for an API backend without a credential."""
    if scraper_type == ScraperType.API:
        if not credential:
            raise ValueError("A credential is required for the api scraper")
        return FirecrawlBackend(api_key=credential, **kwargs)
    return HeadlessBrowserBackend(**kwargs)
