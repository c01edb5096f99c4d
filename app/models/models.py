"""
Database Models - analyses and their per-page scores.

Design decisions:
- UUID primary keys (job ids are handed to clients)
- JSONB breakdown so the ten-factor shape is stored as served
- Indexes for every lookup the API makes: by domain, status, recency, parent
- Page scores are insert-only; only Analysis.status/overall_score/error_message change
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


# ─────────────────────────────────────────────
# Mixins
# ─────────────────────────────────────────────

class CreatedAtMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class UUIDPrimaryKeyMixin:
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, nullable=False)


# ─────────────────────────────────────────────
# Analyses
# ─────────────────────────────────────────────

class Analysis(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """One submitted URL and the lifecycle of its analysis job."""
    __tablename__ = "analyses"

    url: Mapped[str] = mapped_column(Text, nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False)
    scraper_type: Mapped[str] = mapped_column(String(20), default="headless", nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    # pending | processing | completed | failed

    overall_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)  # User-safe text only

    page_scores: Mapped[list["PageScore"]] = relationship(
        "PageScore",
        back_populates="analysis",
        cascade="all, delete-orphan",
        order_by="PageScore.created_at",
    )

    __table_args__ = (
        Index("ix_analyses_domain", "domain"),
        Index("ix_analyses_status", "status"),
        Index("ix_analyses_created_at", "created_at"),
    )


# ─────────────────────────────────────────────
# Page Scores
# ─────────────────────────────────────────────

class PageScore(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """Ten-factor score of one successfully scraped page."""
    __tablename__ = "page_scores"

    analysis_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    scores_breakdown: Mapped[dict] = mapped_column(JSONB, default=dict, nullable=False)
    raw_content: Mapped[str | None] = mapped_column(Text, nullable=True)

    analysis: Mapped[Analysis] = relationship("Analysis", back_populates="page_scores")

    __table_args__ = (
        Index("ix_page_scores_analysis_id", "analysis_id"),
    )
