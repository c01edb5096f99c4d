"""
Celery Application Configuration

Queue Architecture:
- analysis_queue: one task per submitted analysis (scrape + score + persist)
- default:        general tasks

Analyses are not retried: a failed job is terminal and the user resubmits.
The in-process deadline (ANALYSIS_DEADLINE_SECONDS) fires before the soft
limit, which fires before the hard kill (ANALYSIS_HARD_TIME_LIMIT).
"""

import structlog
from celery import Celery
from celery.signals import after_setup_logger, task_failure, worker_ready
from kombu import Exchange, Queue

from app.core.config import get_settings

logger = structlog.get_logger("celery.worker")
settings = get_settings()

# ─────────────────────────────────────────────
# Celery App
# ─────────────────────────────────────────────

celery_app = Celery(
    "geo_score",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.workers.analysis_tasks"],
)

# ─────────────────────────────────────────────
# Queue Definitions
# ─────────────────────────────────────────────

default_exchange = Exchange("default", type="direct")
analysis_exchange = Exchange("analysis", type="direct")

celery_app.conf.task_queues = (
    Queue("default", default_exchange, routing_key="default"),
    Queue("analysis_queue", analysis_exchange, routing_key="analysis"),
)

celery_app.conf.task_default_queue = "default"
celery_app.conf.task_default_exchange = "default"
celery_app.conf.task_default_routing_key = "default"

celery_app.conf.task_routes = {
    "app.workers.analysis_tasks.*": {"queue": "analysis_queue"},
}

# ─────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Reliability
    task_acks_late=False,                   # A redelivered analysis would find its row already terminal
    worker_prefetch_multiplier=1,

    # Timeouts
    task_soft_time_limit=settings.ANALYSIS_HARD_TIME_LIMIT - 3,
    task_time_limit=settings.ANALYSIS_HARD_TIME_LIMIT,

    # Results
    result_expires=86400,

    # Monitoring
    worker_send_task_events=True,
    task_send_sent_event=True,
)


# ─────────────────────────────────────────────
# Signals
# ─────────────────────────────────────────────

@worker_ready.connect
def on_worker_ready(sender, **kwargs):
    logger.info("Celery worker ready", hostname=sender.hostname, queues=[q.name for q in celery_app.conf.task_queues])


@task_failure.connect
def on_task_failure(sender=None, task_id=None, exception=None, **kwargs):
    logger.error("Celery task crashed", task=sender.name if sender else None, task_id=task_id, error=str(exception))


@after_setup_logger.connect
def setup_celery_logging(logger, *args, **kwargs):
    from app.core.logging import configure_logging
    configure_logging(component="worker")
