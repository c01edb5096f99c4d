"""
Scrape Backend contract.

fetch(url) -> ScrapeResult and never raises: every failure becomes a
tagged ScrapeResult. Backends are async context managers so the pipeline
releases them on every exit path.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import structlog

from app.core.config import get_settings
from app.engines.base import ScrapeResult, ScraperType
from app.engines.scheduler.engine import run_batch

settings = get_settings()


class ScrapeBackend(ABC):

    SCRAPER_TYPE: ScraperType

    def __init__(
        self,
        concurrency: int = settings.SCRAPE_CONCURRENCY,
        batch_delay: float = settings.SCRAPE_BATCH_DELAY_SECONDS,
    ):
        self.concurrency = concurrency
        self.batch_delay = batch_delay
        self.logger = structlog.get_logger(self.__class__.__name__)

    @abstractmethod
    async def fetch(self, url: str) -> ScrapeResult:
        ...

    async def fetch_all(self, urls: list[str]) -> list[ScrapeResult]:
        """Fetch many URLs through the batch scheduler; failures are dropped."""
        return await run_batch(urls, self.fetch, concurrency=self.concurrency, batch_delay=self.batch_delay)

    async def start(self) -> None:
        """Acquire long-lived resources. Default: nothing to acquire."""

    async def close(self) -> None:
        """Release long-lived resources. Safe to call more than once."""

    async def __aenter__(self) -> ScrapeBackend:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
