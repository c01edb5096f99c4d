"""
Structured logging using structlog.
Outputs JSON in production, colored console in development.

Both processes (API and Celery worker) log through the same processor chain;
`component` tells their lines apart. Scraping-API credentials travel through
the task layer, so any event key that looks like a secret is masked before
rendering.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from app.core.config import get_settings

NOISY_LOGGERS = ("asyncio", "sqlalchemy.engine", "httpx", "httpcore", "playwright", "celery")

SECRET_KEYS = frozenset({"credential", "api_key", "authorization", "password", "token"})
REDACTED = "***"


def add_severity(logger: Any, method: str, event_dict: EventDict) -> EventDict:
    """Map structlog levels to GCP/Datadog severity levels."""
    event_dict["severity"] = method.upper() if method in ("debug", "info", "warning", "error", "critical") else "INFO"
    return event_dict


def redact_secrets(logger: Any, method: str, event_dict: EventDict) -> EventDict:
    for key in event_dict:
        if key.lower() in SECRET_KEYS and event_dict[key] is not None:
            event_dict[key] = REDACTED
    return event_dict


def component_tagger(component: str) -> Processor:
    def add_component(logger: Any, method: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("component", component)
        return event_dict
    return add_component


def bind_analysis(analysis_id: str, **extra: Any) -> None:
    """Attach the analysis id to every log line from the current context."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(analysis_id=analysis_id, **extra)


def configure_logging(component: str = "api") -> None:
    settings = get_settings()
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        component_tagger(component),
        redact_secrets,
        add_severity,
    ]

    if settings.LOG_FORMAT == "json":
        renderer: list[Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer = [structlog.dev.ConsoleRenderer(colors=True)]

    structlog.configure(
        processors=shared_processors + renderer,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    if settings.ENV == "production":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
