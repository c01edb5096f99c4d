"""
Analysis API Routes

No business logic lives here.
Routes validate input, call the datastore, dispatch work, return responses.
"""

from __future__ import annotations

from datetime import datetime
from urllib.parse import urlsplit
from uuid import UUID

import structlog
from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import BaseModel

from app.api.v1.dependencies import DatastoreDep, RateLimiterDep, ValidatorDep, client_address
from app.engines.base import AnalysisStatus, ScraperType
from app.engines.preview.engine import ContentPreview, extract_content_preview
from app.workers.analysis_tasks import run_analysis_task

logger = structlog.get_logger(__name__)
router = APIRouter()


# ─────────────────────────────────────────────
# Request / Response Schemas
# ─────────────────────────────────────────────

class CreateAnalysisRequest(BaseModel):
    url: str | None = None
    scraper_type: ScraperType = ScraperType.HEADLESS
    credential: str | None = None


class AnalysisCreatedResponse(BaseModel):
    id: UUID
    status: AnalysisStatus


class PageScoreResponse(BaseModel):
    id: UUID
    analysis_id: UUID
    url: str
    score: int
    scores_breakdown: dict
    raw_content: str | None = None
    created_at: datetime


class AnalysisDetailResponse(BaseModel):
    id: UUID
    url: str
    domain: str
    scraper_type: ScraperType
    status: AnalysisStatus
    overall_score: int | None
    error_message: str | None
    created_at: datetime
    page_scores: list[PageScoreResponse]


# ─────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────

@router.post(
    "",
    response_model=AnalysisCreatedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start a new GEO analysis",
    description="Validates the URL and queues an analysis. Returns immediately with the analysis id.",
)
async def create_analysis(
    body: CreateAnalysisRequest,
    request: Request,
    datastore: DatastoreDep,
    rate_limiter: RateLimiterDep,
    validator: ValidatorDep,
) -> AnalysisCreatedResponse:
    """
    Start an analysis.

    1. Admission check against the per-address rate limit
    2. Require a URL, and a credential for the api scraper
    3. SSRF validation of the root URL
    4. Insert the pending analysis
    5. Dispatch the Celery task and return 202
    """
    client = client_address(request)
    decision = await rate_limiter.check(client)
    if not decision.allowed:
        logger.info("Analysis rate limited", client=client, retry_after=decision.retry_after_seconds)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please wait before submitting another analysis.",
            headers={"Retry-After": str(decision.retry_after_seconds)},
        )

    if not body.url or not body.url.strip():
        raise HTTPException(status_code=400, detail="URL is required")
    if body.scraper_type == ScraperType.API and not (body.credential and body.credential.strip()):
        raise HTTPException(status_code=400, detail="A scraping API key is required for the api scraper")

    checked = await validator.validate(body.url)
    if not checked.valid:
        raise HTTPException(status_code=400, detail=checked.message)

    domain = (urlsplit(checked.url).hostname or "").lower()
    analysis = await datastore.create_analysis(checked.url, domain, body.scraper_type)

    run_analysis_task.apply_async(
        args=[str(analysis.id), analysis.url, body.scraper_type.value, body.credential],
        task_id=str(analysis.id),
    )

    logger.info("Analysis created", analysis_id=str(analysis.id), domain=domain, scraper=body.scraper_type.value)

    return AnalysisCreatedResponse(id=analysis.id, status=analysis.status)


@router.get(
    "/{analysis_id}",
    response_model=AnalysisDetailResponse,
    summary="Get analysis status and page scores",
)
async def get_analysis(
    analysis_id: UUID,
    datastore: DatastoreDep,
    include_content: bool = Query(False, description="Include raw page HTML"),
) -> AnalysisDetailResponse:
    analysis = await datastore.get_analysis(analysis_id)
    if not analysis:
        raise HTTPException(status_code=404, detail="Analysis not found")

    pages = await datastore.list_page_scores(analysis_id)

    return AnalysisDetailResponse(
        **analysis.model_dump(),
        page_scores=[
            PageScoreResponse(
                **p.model_dump(exclude={"raw_content"}),
                raw_content=p.raw_content if include_content else None,
            )
            for p in pages
        ],
    )


@router.get(
    "/{analysis_id}/pages/{page_id}/preview",
    response_model=ContentPreview,
    summary="Preview a scraped page as an AI crawler sees it",
)
async def get_page_preview(analysis_id: UUID, page_id: UUID, datastore: DatastoreDep) -> ContentPreview:
    page = await datastore.get_page_score(analysis_id, page_id)
    if not page:
        raise HTTPException(status_code=404, detail="Page not found")
    if not page.raw_content:
        raise HTTPException(status_code=404, detail="No stored content for this page")

    return extract_content_preview(page.raw_content, page.url)
