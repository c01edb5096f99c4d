"""
Shared test doubles: in-memory datastore, scripted scrape backend, fake DNS.
Nothing here touches the network or a database.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

import pytest

from app.engines.base import AnalysisStatus, ScrapeErrorKind, ScrapeResult, ScraperType, check_transition
from app.engines.scrapers.base import ScrapeBackend
from app.engines.validator.engine import URLSafetyValidator
from app.services.datastore import (
    AnalysisRecord,
    Datastore,
    NewPageScore,
    PageScoreRecord,
    RankingsPage,
    clamp_page,
)


# ─────────────────────────────────────────────
# Datastore
# ─────────────────────────────────────────────

class InMemoryDatastore(Datastore):
    """Dict-backed Datastore with the same conditional-transition semantics."""

    def __init__(self):
        self.analyses: dict[uuid.UUID, AnalysisRecord] = {}
        self.page_scores: list[PageScoreRecord] = []
        self.transitions: list[tuple[uuid.UUID, AnalysisStatus]] = []
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def _now(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    async def create_analysis(self, url: str, domain: str, scraper_type: ScraperType) -> AnalysisRecord:
        record = AnalysisRecord(
            id=uuid.uuid4(),
            url=url,
            domain=domain,
            scraper_type=scraper_type,
            status=AnalysisStatus.PENDING,
            created_at=self._now(),
        )
        self.analyses[record.id] = record
        return record

    def add_completed(self, domain: str, score: int, url: str | None = None) -> AnalysisRecord:
        record = AnalysisRecord(
            id=uuid.uuid4(),
            url=url or f"https://{domain}/",
            domain=domain,
            scraper_type=ScraperType.HEADLESS,
            status=AnalysisStatus.COMPLETED,
            overall_score=score,
            created_at=self._now(),
        )
        self.analyses[record.id] = record
        return record

    async def transition_analysis(
        self,
        analysis_id: uuid.UUID,
        from_statuses: Iterable[AnalysisStatus],
        to_status: AnalysisStatus,
        **values: Any,
    ) -> bool:
        from_statuses = set(from_statuses)
        for status in from_statuses:
            check_transition(status, to_status)
        current = self.analyses.get(analysis_id)
        if current is None or current.status not in from_statuses:
            return False
        self.analyses[analysis_id] = current.model_copy(update={"status": to_status, **values})
        self.transitions.append((analysis_id, to_status))
        return True

    async def insert_page_scores(self, rows: list[NewPageScore]) -> None:
        for row in rows:
            self.page_scores.append(PageScoreRecord(id=uuid.uuid4(), created_at=self._now(), **row.model_dump()))

    async def get_analysis(self, analysis_id: uuid.UUID) -> AnalysisRecord | None:
        return self.analyses.get(analysis_id)

    async def list_page_scores(self, analysis_id: uuid.UUID) -> list[PageScoreRecord]:
        return [p for p in self.page_scores if p.analysis_id == analysis_id]

    async def get_page_score(self, analysis_id: uuid.UUID, page_id: uuid.UUID) -> PageScoreRecord | None:
        return next((p for p in self.page_scores if p.id == page_id and p.analysis_id == analysis_id), None)

    async def list_rankings(self, page: int, page_size: int, query: str | None = None) -> RankingsPage:
        latest: dict[str, AnalysisRecord] = {}
        for a in sorted(self.analyses.values(), key=lambda a: a.created_at):
            if a.status == AnalysisStatus.COMPLETED and a.overall_score is not None:
                latest[a.domain] = a
        rows = [a for a in latest.values() if not query or query.lower() in a.domain.lower()]
        rows.sort(key=lambda a: (-a.overall_score, -a.created_at.timestamp()))

        page, total_pages = clamp_page(page, len(rows), page_size)
        start = (page - 1) * page_size
        return RankingsPage(
            items=rows[start:start + page_size],
            page=page,
            page_size=page_size,
            total_pages=total_pages,
            total_items=len(rows),
        )

    async def list_domain_history(self, domain: str) -> list[AnalysisRecord]:
        return sorted(
            (a for a in self.analyses.values() if a.domain == domain and a.status == AnalysisStatus.COMPLETED),
            key=lambda a: a.created_at,
        )


# ─────────────────────────────────────────────
# Scrape backend
# ─────────────────────────────────────────────

class FakeScrapeBackend(ScrapeBackend):
    """Serves canned HTML per URL; unknown URLs fail with a navigation error."""

    SCRAPER_TYPE = ScraperType.HEADLESS

    def __init__(self, pages: dict[str, str], delay: float = 0.0, **kwargs):
        super().__init__(**kwargs)
        self.pages = pages
        self.delay = delay
        self.fetched: list[str] = []
        self.started = False
        self.closed = False

    async def start(self) -> None:
        self.started = True

    async def fetch(self, url: str) -> ScrapeResult:
        self.fetched.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        html = self.pages.get(url)
        if html is None:
            return ScrapeResult.failure(url, ScrapeErrorKind.NAVIGATION, "not found")
        return ScrapeResult(url=url, html=html, title="")

    async def close(self) -> None:
        self.closed = True


# ─────────────────────────────────────────────
# DNS
# ─────────────────────────────────────────────

def make_resolver(table: dict[str, list[str]] | None = None, default: str = "93.184.216.34"):
    """Resolver that answers from `table`, falling back to one public address."""

    async def resolve(hostname: str) -> list[str]:
        if table and hostname in table:
            answer = table[hostname]
            if not answer:
                raise OSError("Name or service not known")
            return answer
        return [default]

    return resolve


@pytest.fixture
def datastore() -> InMemoryDatastore:
    return InMemoryDatastore()


@pytest.fixture
def validator() -> URLSafetyValidator:
    return URLSafetyValidator(resolver=make_resolver())
