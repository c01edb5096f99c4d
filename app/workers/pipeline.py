"""
Analysis Pipeline - drives one analysis from pending to a terminal state.

Flow:
1. pending -> processing (before any network call)
2. Validate root URL, scrape homepage
3. Discover sublinks on the homepage, validate them again, scrape in batches
4. Score every scraped page, insert page scores
5. processing -> completed with the rounded mean page score

Failure handling:
- Homepage failure, deadline expiry and unhandled errors end in `failed`
  with a fixed user-safe message; the detail is only logged
- Sublink failures are dropped, never fatal
- Exactly one terminal write per analysis, even when the deadline fires
  while the completion write is in flight
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from statistics import fmean
from typing import Callable

import structlog

from app.core.config import get_settings
from app.engines.base import AnalysisStatus, ScraperType, round_half_up
from app.engines.discovery.engine import LinkDiscoverer, URLNormalizer
from app.engines.scoring.engine import GeoScorer
from app.engines.scrapers.base import ScrapeBackend
from app.engines.scrapers.factory import create_scrape_backend
from app.engines.validator.engine import URLSafetyValidator
from app.services.datastore import Datastore, NewPageScore

logger = structlog.get_logger(__name__)
settings = get_settings()

HOMEPAGE_FAILED_MESSAGE = "Could not load the page. Check the URL and try again."
DEADLINE_EXCEEDED_MESSAGE = "Analysis timed out. The site took too long to respond."
INTERNAL_ERROR_MESSAGE = "Analysis failed due to an internal error."

BackendFactory = Callable[..., ScrapeBackend]


@dataclass
class AnalysisRun:
    analysis_id: uuid.UUID
    url: str
    scraper_type: ScraperType
    credential: str | None = None
    status: AnalysisStatus = AnalysisStatus.PENDING
    started_at: float = field(default_factory=time.perf_counter)
    finished: asyncio.Future | None = None

    @property
    def elapsed_ms(self) -> float:
        return round((time.perf_counter() - self.started_at) * 1000, 2)


class AnalysisPipeline:
    """Job orchestrator. Collaborators are injected; nothing here is global state."""

    def __init__(
        self,
        datastore: Datastore,
        validator: URLSafetyValidator | None = None,
        backend_factory: BackendFactory = create_scrape_backend,
        discoverer: LinkDiscoverer | None = None,
        scorer: GeoScorer | None = None,
        deadline: float = settings.ANALYSIS_DEADLINE_SECONDS,
        concurrency: int = settings.SCRAPE_CONCURRENCY,
        batch_delay: float = settings.SCRAPE_BATCH_DELAY_SECONDS,
    ):
        self.datastore = datastore
        self.validator = validator or URLSafetyValidator()
        self.backend_factory = backend_factory
        self.discoverer = discoverer or LinkDiscoverer(max_pages=settings.CRAWLER_MAX_PAGES)
        self.scorer = scorer or GeoScorer()
        self.deadline = deadline
        self.concurrency = concurrency
        self.batch_delay = batch_delay

    async def run(
        self,
        analysis_id: uuid.UUID,
        url: str,
        scraper_type: ScraperType = ScraperType.HEADLESS,
        credential: str | None = None,
    ) -> AnalysisStatus:
        """Run one analysis to a terminal state and return that state."""
        run = AnalysisRun(analysis_id=analysis_id, url=url, scraper_type=scraper_type, credential=credential)
        log = logger.bind(analysis_id=str(analysis_id), url=url, scraper=scraper_type.value)

        moved = await self.datastore.transition_analysis(
            analysis_id, [AnalysisStatus.PENDING], AnalysisStatus.PROCESSING
        )
        if not moved:
            log.warning("Analysis not pending, skipping")
            current = await self.datastore.get_analysis(analysis_id)
            return current.status if current else AnalysisStatus.FAILED
        run.status = AnalysisStatus.PROCESSING
        log.info("Analysis started")

        try:
            await asyncio.wait_for(self._execute(run, log), timeout=self.deadline)
        except asyncio.TimeoutError:
            if run.finished is None:
                log.error("Analysis deadline exceeded", deadline=self.deadline, elapsed_ms=run.elapsed_ms)
            await self._finish(run, AnalysisStatus.FAILED, error_message=DEADLINE_EXCEEDED_MESSAGE)
        except Exception as e:
            log.error("Analysis pipeline error", error=str(e), elapsed_ms=run.elapsed_ms, exc_info=True)
            await self._finish(run, AnalysisStatus.FAILED, error_message=INTERNAL_ERROR_MESSAGE)

        log.info("Analysis finished", status=run.status.value, elapsed_ms=run.elapsed_ms)
        return run.status

    async def _execute(self, run: AnalysisRun, log: structlog.BoundLogger) -> None:
        checked = await self.validator.validate(run.url)
        if not checked.valid:
            log.warning("Root URL rejected at run time", reason=checked.reason)
            await self._finish(run, AnalysisStatus.FAILED, error_message=checked.message)
            return
        base_url = checked.url

        backend = self.backend_factory(
            run.scraper_type,
            run.credential,
            concurrency=self.concurrency,
            batch_delay=self.batch_delay,
        )
        async with backend:
            homepage = await backend.fetch(base_url)
            if not homepage.ok:
                log.warning(
                    "Homepage scrape failed",
                    error=homepage.error.value if homepage.error else "empty_content",
                    detail=homepage.error_detail,
                )
                await self._finish(run, AnalysisStatus.FAILED, error_message=HOMEPAGE_FAILED_MESSAGE)
                return

            already_scraped = {URLNormalizer.normalize(base_url), URLNormalizer.normalize(homepage.url)}
            candidates = [
                link for link in self.discoverer.discover(base_url, homepage.html)
                if URLNormalizer.normalize(link) not in already_scraped
            ]
            safe_links = await self.validator.filter_safe(candidates)
            log.info("Sublinks discovered", discovered=len(candidates), safe=len(safe_links))

            subpages = await backend.fetch_all(safe_links)

        rows: list[NewPageScore] = []
        for page in [homepage, *subpages]:
            try:
                result = self.scorer.score(page.html, page.url)
            except Exception as e:
                log.warning("Page scoring failed", page_url=page.url, error=str(e))
                continue
            rows.append(NewPageScore(
                analysis_id=run.analysis_id,
                url=page.url,
                score=result.total_score,
                scores_breakdown=result.breakdown_json(),
                raw_content=page.html,
            ))

        await self.datastore.insert_page_scores(rows)

        overall = round_half_up(fmean(r.score for r in rows)) if rows else 0
        log.info("Pages scored", pages=len(rows), overall_score=overall)
        await self._finish(run, AnalysisStatus.COMPLETED, overall_score=overall)

    async def _finish(self, run: AnalysisRun, status: AnalysisStatus, **values) -> None:
        """
        Write the terminal state once; later calls wait for the first write.
        A write that raised does not count, so the caller can still record `failed`.
        """
        if run.finished is not None and run.finished.done() and run.finished.exception() is not None:
            run.finished = None
        if run.finished is None:
            run.finished = asyncio.ensure_future(self._write_terminal(run, status, values))
        await asyncio.shield(run.finished)

    async def _write_terminal(self, run: AnalysisRun, status: AnalysisStatus, values: dict) -> None:
        moved = await self.datastore.transition_analysis(
            run.analysis_id, [AnalysisStatus.PROCESSING], status, **values
        )
        if moved:
            run.status = status
