"""
Tests for the Celery analysis task wrapper.
The task is called in-process; the pipeline and datastore are patched.
"""

import uuid
from unittest.mock import AsyncMock, patch

from celery.exceptions import SoftTimeLimitExceeded

from app.engines.base import AnalysisStatus, ScraperType
from app.workers.analysis_tasks import run_analysis_task
from app.workers.celery_app import celery_app
from app.workers.pipeline import DEADLINE_EXCEEDED_MESSAGE, INTERNAL_ERROR_MESSAGE


class TestRunAnalysisTask:

    def test_runs_pipeline_and_reports_status(self):
        analysis_id = uuid.uuid4()
        with patch("app.workers.analysis_tasks._run_pipeline", new=AsyncMock(return_value=AnalysisStatus.COMPLETED)) as run:
            result = run_analysis_task(str(analysis_id), "https://example.com", "api", "fc-key")

        run.assert_awaited_once_with(analysis_id, "https://example.com", ScraperType.API, "fc-key")
        assert result == {"analysis_id": str(analysis_id), "status": "completed"}

    def test_soft_time_limit_forces_failed(self):
        analysis_id = uuid.uuid4()
        with (
            patch("app.workers.analysis_tasks._run_pipeline", new=AsyncMock(side_effect=SoftTimeLimitExceeded())),
            patch("app.workers.analysis_tasks._force_failed", new=AsyncMock()) as force_failed,
        ):
            result = run_analysis_task(str(analysis_id), "https://example.com")

        force_failed.assert_awaited_once_with(analysis_id, DEADLINE_EXCEEDED_MESSAGE)
        assert result["status"] == "failed"

    def test_pipeline_crash_forces_failed(self):
        analysis_id = uuid.uuid4()
        with (
            patch("app.workers.analysis_tasks._run_pipeline", new=AsyncMock(side_effect=RuntimeError("db down"))),
            patch("app.workers.analysis_tasks._force_failed", new=AsyncMock()) as force_failed,
        ):
            result = run_analysis_task(str(analysis_id), "https://example.com")

        force_failed.assert_awaited_once_with(analysis_id, INTERNAL_ERROR_MESSAGE)
        assert result == {"analysis_id": str(analysis_id), "status": "failed"}


class TestCeleryConfig:

    def test_task_routed_to_analysis_queue(self):
        assert celery_app.conf.task_routes["app.workers.analysis_tasks.*"] == {"queue": "analysis_queue"}

    def test_not_retried_and_time_limited(self):
        assert run_analysis_task.max_retries == 0
        assert run_analysis_task.time_limit == 60
        assert run_analysis_task.soft_time_limit < run_analysis_task.time_limit
        assert celery_app.conf.task_serializer == "json"
