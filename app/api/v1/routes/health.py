"""Health check endpoints for load balancer and monitoring."""

import sqlalchemy
from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from app.core.config import get_settings
from app.core.database import AsyncSessionLocal

router = APIRouter()
settings = get_settings()


class HealthResponse(BaseModel):
    status: str
    version: str
    checks: dict[str, str]


async def _check_database() -> None:
    async with AsyncSessionLocal() as session:
        await session.execute(sqlalchemy.text("SELECT 1"))


async def _check_redis(request: Request) -> None:
    await request.app.state.redis_pool.client().ping()


def _check_broker() -> None:
    from app.workers.celery_app import celery_app
    with celery_app.connection_for_write() as conn:
        conn.ensure_connection(max_retries=1)


@router.get("", response_model=HealthResponse, include_in_schema=False)
async def health_check(request: Request) -> HealthResponse:
    checks: dict[str, str] = {}

    for name, probe in (
        ("database", _check_database()),
        ("redis", _check_redis(request)),
        ("broker", run_in_threadpool(_check_broker)),
    ):
        try:
            await probe
            checks[name] = "healthy"
        except Exception as e:
            checks[name] = f"unhealthy: {str(e)}"

    overall = "healthy" if all("unhealthy" not in v for v in checks.values()) else "degraded"

    return HealthResponse(status=overall, version=settings.APP_VERSION, checks=checks)


@router.get("/ready", include_in_schema=False)
async def readiness() -> dict:
    """Kubernetes readiness probe."""
    return {"ready": True}


@router.get("/live", include_in_schema=False)
async def liveness() -> dict:
    """Kubernetes liveness probe."""
    return {"alive": True}
