"""
Analysis Tasks - Celery entry point for running one analysis.

Flow:
1. API inserts a pending analysis and dispatches run_analysis_task (task id == analysis id)
2. The task runs AnalysisPipeline in a fresh event loop
3. If the soft time limit fires anyway, or the pipeline itself raises, the
   row is forced to failed so it cannot stay in processing
"""

from __future__ import annotations

import asyncio
import uuid

import structlog
from celery.exceptions import SoftTimeLimitExceeded

from app.core.config import get_settings
from app.core.database import isolated_session_factory
from app.core.logging import bind_analysis
from app.engines.base import AnalysisStatus, ScraperType
from app.services.datastore import SQLAlchemyDatastore
from app.workers.celery_app import celery_app
from app.workers.pipeline import DEADLINE_EXCEEDED_MESSAGE, INTERNAL_ERROR_MESSAGE, AnalysisPipeline

logger = structlog.get_logger(__name__)
settings = get_settings()


def run_async(coro):
    """Run an async coroutine in a Celery (sync) task context."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# ─────────────────────────────────────────────
# Task: Run Analysis
# ─────────────────────────────────────────────

@celery_app.task(
    name="app.workers.analysis_tasks.run_analysis_task",
    bind=True,
    max_retries=0,
    queue="analysis_queue",
    acks_late=False,
    soft_time_limit=settings.ANALYSIS_HARD_TIME_LIMIT - 3,
    time_limit=settings.ANALYSIS_HARD_TIME_LIMIT,
)
def run_analysis_task(
    self,
    analysis_id: str,
    url: str,
    scraper_type: str = ScraperType.HEADLESS.value,
    credential: str | None = None,
) -> dict:
    """Scrape, score and persist one analysis. Never retried."""
    bind_analysis(analysis_id, task_id=self.request.id)
    logger.info("Analysis task received", scraper=scraper_type, credential=credential)

    try:
        final = run_async(_run_pipeline(uuid.UUID(analysis_id), url, ScraperType(scraper_type), credential))
    except SoftTimeLimitExceeded:
        logger.error("Analysis task hit soft time limit", analysis_id=analysis_id)
        run_async(_force_failed(uuid.UUID(analysis_id), DEADLINE_EXCEEDED_MESSAGE))
        return {"analysis_id": analysis_id, "status": AnalysisStatus.FAILED.value}
    except Exception as e:
        logger.error("Analysis task crashed", error=str(e), exc_info=True)
        run_async(_force_failed(uuid.UUID(analysis_id), INTERNAL_ERROR_MESSAGE))
        return {"analysis_id": analysis_id, "status": AnalysisStatus.FAILED.value}

    return {"analysis_id": analysis_id, "status": final.value}


async def _run_pipeline(
    analysis_id: uuid.UUID,
    url: str,
    scraper_type: ScraperType,
    credential: str | None,
) -> AnalysisStatus:
    async with isolated_session_factory() as session_factory:
        pipeline = AnalysisPipeline(datastore=SQLAlchemyDatastore(session_factory))
        return await pipeline.run(analysis_id, url, scraper_type, credential)


async def _force_failed(analysis_id: uuid.UUID, error_message: str) -> None:
    async with isolated_session_factory() as session_factory:
        await SQLAlchemyDatastore(session_factory).transition_analysis(
            analysis_id,
            [AnalysisStatus.PROCESSING],
            AnalysisStatus.FAILED,
            error_message=error_message,
        )
