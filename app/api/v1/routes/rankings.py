"""Domain rankings and per-domain score history."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query
from pydantic import BaseModel

from app.api.v1.dependencies import DatastoreDep
from app.core.config import get_settings

router = APIRouter()
settings = get_settings()


class RankingEntry(BaseModel):
    id: UUID
    domain: str
    url: str
    overall_score: int | None
    created_at: datetime


class Pagination(BaseModel):
    page: int
    page_size: int
    total_pages: int
    total_items: int


class RankingsResponse(BaseModel):
    data: list[RankingEntry]
    pagination: Pagination


@router.get(
    "",
    response_model=RankingsResponse,
    summary="Latest completed analysis per domain, best score first",
)
async def list_rankings(
    datastore: DatastoreDep,
    page: int = Query(1, description="Page number; out-of-range values are clamped"),
    q: str | None = Query(None, max_length=255, description="Case-insensitive domain filter"),
) -> RankingsResponse:
    result = await datastore.list_rankings(page, settings.RANKINGS_PAGE_SIZE, (q or "").strip() or None)

    return RankingsResponse(
        data=[RankingEntry.model_validate(r.model_dump()) for r in result.items],
        pagination=Pagination(
            page=result.page,
            page_size=result.page_size,
            total_pages=result.total_pages,
            total_items=result.total_items,
        ),
    )


@router.get(
    "/{domain}/history",
    response_model=list[RankingEntry],
    summary="Completed analyses of one domain, oldest first",
)
async def domain_history(domain: str, datastore: DatastoreDep) -> list[RankingEntry]:
    history = await datastore.list_domain_history(domain.strip().lower())
    return [RankingEntry.model_validate(a.model_dump()) for a in history]
