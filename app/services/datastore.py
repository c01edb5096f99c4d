"""
Datastore - the only component that reads or writes analyses and page scores.

The orchestrator mutates state at three fixed points (enter processing,
insert page scores, enter a terminal state); the API only reads.
Status moves are conditional updates, so a stale writer cannot move a
job backwards or overwrite a terminal state.
"""

from __future__ import annotations

import math
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

import structlog
from pydantic import BaseModel, ConfigDict
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.engines.base import AnalysisStatus, ScraperType, check_transition
from app.models.models import Analysis, PageScore

logger = structlog.get_logger(__name__)


# ─────────────────────────────────────────────
# Records
# ─────────────────────────────────────────────

class AnalysisRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    url: str
    domain: str
    scraper_type: ScraperType
    status: AnalysisStatus
    overall_score: int | None = None
    error_message: str | None = None
    created_at: datetime


class PageScoreRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    analysis_id: uuid.UUID
    url: str
    score: int
    scores_breakdown: dict[str, Any]
    raw_content: str | None = None
    created_at: datetime


class NewPageScore(BaseModel):
    analysis_id: uuid.UUID
    url: str
    score: int
    scores_breakdown: dict[str, Any]
    raw_content: str | None = None


class RankingsPage(BaseModel):
    items: list[AnalysisRecord]
    page: int
    page_size: int
    total_pages: int
    total_items: int


def escape_like(value: str) -> str:
    """Make `%` and `_` match literally in a LIKE pattern escaped with a backslash."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def clamp_page(page: int, total_items: int, page_size: int) -> tuple[int, int]:
    """(page clamped to [1, total_pages], total_pages >= 1)."""
    total_pages = max(1, math.ceil(total_items / page_size))
    return min(max(1, page), total_pages), total_pages


# ─────────────────────────────────────────────
# Interface
# ─────────────────────────────────────────────

class Datastore(ABC):

    @abstractmethod
    async def create_analysis(self, url: str, domain: str, scraper_type: ScraperType) -> AnalysisRecord:
        """Insert a new analysis in the pending state."""

    @abstractmethod
    async def transition_analysis(
        self,
        analysis_id: uuid.UUID,
        from_statuses: Iterable[AnalysisStatus],
        to_status: AnalysisStatus,
        **values: Any,
    ) -> bool:
        """
        Move an analysis to `to_status` only if it is currently in one of
        `from_statuses`, writing `values` in the same update.

        Returns:
            True if the row moved, False if its status did not match
        """

    @abstractmethod
    async def insert_page_scores(self, rows: list[NewPageScore]) -> None:
        """Insert page scores; later rows sort after earlier ones."""

    @abstractmethod
    async def get_analysis(self, analysis_id: uuid.UUID) -> AnalysisRecord | None:
        ...

    @abstractmethod
    async def list_page_scores(self, analysis_id: uuid.UUID) -> list[PageScoreRecord]:
        """Page scores in insertion order."""

    @abstractmethod
    async def get_page_score(self, analysis_id: uuid.UUID, page_id: uuid.UUID) -> PageScoreRecord | None:
        ...

    @abstractmethod
    async def list_rankings(self, page: int, page_size: int, query: str | None = None) -> RankingsPage:
        """Most recent completed analysis per domain, best score first."""

    @abstractmethod
    async def list_domain_history(self, domain: str) -> list[AnalysisRecord]:
        """Completed analyses of one domain, oldest first."""


# ─────────────────────────────────────────────
# SQLAlchemy implementation
# ─────────────────────────────────────────────

class SQLAlchemyDatastore(Datastore):
    """One short-lived session per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create_analysis(self, url: str, domain: str, scraper_type: ScraperType) -> AnalysisRecord:
        async with self.session_factory() as session:
            analysis = Analysis(
                url=url,
                domain=domain,
                scraper_type=scraper_type.value,
                status=AnalysisStatus.PENDING.value,
            )
            session.add(analysis)
            await session.commit()
            await session.refresh(analysis)
            return AnalysisRecord.model_validate(analysis)

    async def transition_analysis(
        self,
        analysis_id: uuid.UUID,
        from_statuses: Iterable[AnalysisStatus],
        to_status: AnalysisStatus,
        **values: Any,
    ) -> bool:
        from_statuses = list(from_statuses)
        for current in from_statuses:
            check_transition(current, to_status)
        allowed = [s.value for s in from_statuses]
        async with self.session_factory() as session:
            result = await session.execute(
                update(Analysis)
                .where(Analysis.id == analysis_id, Analysis.status.in_(allowed))
                .values(status=to_status.value, **values)
            )
            await session.commit()

        moved = result.rowcount == 1
        if not moved:
            logger.warning(
                "Status transition skipped",
                analysis_id=str(analysis_id),
                expected=allowed,
                target=to_status.value,
            )
        return moved

    async def insert_page_scores(self, rows: list[NewPageScore]) -> None:
        if not rows:
            return
        base = datetime.now(timezone.utc)
        async with self.session_factory() as session:
            session.add_all([
                PageScore(**row.model_dump(), created_at=base + timedelta(microseconds=i))
                for i, row in enumerate(rows)
            ])
            await session.commit()

    async def get_analysis(self, analysis_id: uuid.UUID) -> AnalysisRecord | None:
        async with self.session_factory() as session:
            analysis = await session.get(Analysis, analysis_id)
            return AnalysisRecord.model_validate(analysis) if analysis else None

    async def list_page_scores(self, analysis_id: uuid.UUID) -> list[PageScoreRecord]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PageScore)
                .where(PageScore.analysis_id == analysis_id)
                .order_by(PageScore.created_at.asc())
            )
            return [PageScoreRecord.model_validate(p) for p in result.scalars().all()]

    async def get_page_score(self, analysis_id: uuid.UUID, page_id: uuid.UUID) -> PageScoreRecord | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PageScore).where(PageScore.id == page_id, PageScore.analysis_id == analysis_id)
            )
            page = result.scalar_one_or_none()
            return PageScoreRecord.model_validate(page) if page else None

    async def list_rankings(self, page: int, page_size: int, query: str | None = None) -> RankingsPage:
        latest = (
            select(
                Analysis,
                func.row_number()
                .over(partition_by=Analysis.domain, order_by=Analysis.created_at.desc())
                .label("rn"),
            )
            .where(
                Analysis.status == AnalysisStatus.COMPLETED.value,
                Analysis.overall_score.is_not(None),
            )
        )
        if query and query.strip():
            latest = latest.where(Analysis.domain.ilike(f"%{escape_like(query.strip())}%", escape="\\"))
        latest = latest.subquery()

        async with self.session_factory() as session:
            total_items = (
                await session.execute(select(func.count()).select_from(latest).where(latest.c.rn == 1))
            ).scalar_one()
            page, total_pages = clamp_page(page, total_items, page_size)

            result = await session.execute(
                select(latest)
                .where(latest.c.rn == 1)
                .order_by(latest.c.overall_score.desc(), latest.c.created_at.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            items = [AnalysisRecord.model_validate(dict(row._mapping)) for row in result.all()]

        return RankingsPage(
            items=items,
            page=page,
            page_size=page_size,
            total_pages=total_pages,
            total_items=total_items,
        )

    async def list_domain_history(self, domain: str) -> list[AnalysisRecord]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Analysis)
                .where(
                    Analysis.domain == domain.lower(),
                    Analysis.status == AnalysisStatus.COMPLETED.value,
                )
                .order_by(Analysis.created_at.asc())
            )
            return [AnalysisRecord.model_validate(a) for a in result.scalars().all()]
