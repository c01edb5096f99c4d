"""
Shared type contracts for the analysis engines.

Design principles:
- Engines are stateless: all state comes from their arguments
- Engines share types through this module; only the pipeline sequences them
- I/O engines return tagged results instead of raising
"""

from __future__ import annotations

import math
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ─────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────

class ScraperType(str, Enum):
    HEADLESS = "headless"   # One browser session per analysis
    API = "api"             # Third-party scraping API, caller-supplied key


class AnalysisStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Forward-only moves; anything else is a programming error.
ALLOWED_TRANSITIONS: dict[AnalysisStatus, frozenset[AnalysisStatus]] = {
    AnalysisStatus.PENDING: frozenset({AnalysisStatus.PROCESSING}),
    AnalysisStatus.PROCESSING: frozenset({AnalysisStatus.COMPLETED, AnalysisStatus.FAILED}),
    AnalysisStatus.COMPLETED: frozenset(),
    AnalysisStatus.FAILED: frozenset(),
}


class FactorKey(str, Enum):
    SCHEMA_MARKUP = "schemaMarkup"
    CONTENT_STRUCTURE = "contentStructure"
    META_TAGS = "metaTags"
    FAQ_CONTENT = "faqContent"
    AUTHOR_EEAT = "authorEEAT"
    CONTENT_FRESHNESS = "contentFreshness"
    INTERNAL_LINKING = "internalLinking"
    IMAGE_ALT_TEXT = "imageAltText"
    AI_CRAWLABILITY = "aiCrawlability"
    ANSWER_FORWARD_WRITING = "answerForwardWriting"


class ScrapeErrorKind(str, Enum):
    INVALID_CREDENTIAL = "invalid_credential"
    QUOTA_EXCEEDED = "quota_exceeded"     # Rate limit or plan quota
    UPSTREAM = "upstream"                 # Any other upstream/API failure
    NAVIGATION = "navigation"             # Browser could not load the page
    EMPTY_CONTENT = "empty_content"


class InvalidTransitionError(RuntimeError):
    """Raised when code attempts a non-forward status move."""

    def __init__(self, current: AnalysisStatus, target: AnalysisStatus):
        super().__init__(f"Cannot move analysis from {current.value} to {target.value}")
        self.current = current
        self.target = target


def check_transition(current: AnalysisStatus, target: AnalysisStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(current, target)


# ─────────────────────────────────────────────
# Core data types
# ─────────────────────────────────────────────

class ScrapeResult(BaseModel):
    """Outcome of one backend fetch. Exactly one of html / error is meaningful."""
    url: str
    html: str = ""
    title: str = ""
    error: ScrapeErrorKind | None = None
    error_detail: str | None = None   # Operator-only diagnostic, never persisted

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.html)

    @classmethod
    def failure(cls, url: str, kind: ScrapeErrorKind, detail: str | None = None) -> ScrapeResult:
        return cls(url=url, error=kind, error_detail=detail)


class GeoFactor(BaseModel):
    """Score for one rubric factor. Serialized with camelCase maxScore."""
    model_config = ConfigDict(populate_by_name=True)

    score: int = Field(ge=0)
    max_score: int = Field(alias="maxScore", gt=0)
    label: str
    details: str

    @model_validator(mode="after")
    def _score_within_max(self) -> GeoFactor:
        if self.score > self.max_score:
            raise ValueError(f"{self.label}: score {self.score} exceeds max {self.max_score}")
        return self


class GeoScoreResult(BaseModel):
    """Ten-factor breakdown of one page. total_score is always the factor sum."""
    total_score: int
    breakdown: dict[FactorKey, GeoFactor]

    @model_validator(mode="after")
    def _total_matches_breakdown(self) -> GeoScoreResult:
        expected = sum(f.score for f in self.breakdown.values())
        if self.total_score != expected:
            raise ValueError(f"total_score {self.total_score} != factor sum {expected}")
        return self

    def breakdown_json(self) -> dict[str, dict]:
        """Breakdown in its persisted JSON shape, keyed by camelCase factor key."""
        return {key.value: factor.model_dump(by_alias=True) for key, factor in self.breakdown.items()}


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative scores (2.5 -> 3)."""
    return int(math.floor(value + 0.5))
