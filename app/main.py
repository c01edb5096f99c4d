"""
GEO Score - Main Application Entry Point
FastAPI application with lifespan-managed datastore, Redis pool and rate limiter.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import sqlalchemy
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.routes import analyses, health, rankings, scoring
from app.core.config import get_settings
from app.core.database import AsyncSessionLocal, engine
from app.core.logging import configure_logging
from app.core.rate_limit import RedisRateLimiter
from app.core.redis import RedisPool
from app.services.datastore import SQLAlchemyDatastore

logger = structlog.get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Manage application lifecycle: startup and shutdown."""
    configure_logging()
    logger.info("Starting GEO Score API", version=settings.APP_VERSION, env=settings.ENV)

    # Verify DB connectivity
    async with engine.begin() as conn:
        await conn.execute(sqlalchemy.text("SELECT 1"))
    logger.info("Database connection verified")

    # Verify Redis
    redis_pool = RedisPool(settings)
    redis = redis_pool.client()
    await redis.ping()
    logger.info("Redis connection verified")

    app.state.redis_pool = redis_pool
    app.state.datastore = SQLAlchemyDatastore(AsyncSessionLocal)
    app.state.rate_limiter = RedisRateLimiter(
        redis,
        max_requests=settings.RATE_LIMIT_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    )

    yield

    # Graceful shutdown
    await engine.dispose()
    await redis_pool.close()
    logger.info("Application shutdown complete")


def create_application() -> FastAPI:
    app = FastAPI(
        title="GEO Score API",
        description="Scores websites for readiness to be cited in AI-generated search answers.",
        version=settings.APP_VERSION,
        docs_url="/docs" if settings.ENV != "production" else None,
        redoc_url="/redoc" if settings.ENV != "production" else None,
        lifespan=lifespan,
    )

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # Routers
    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(analyses.router, prefix="/api/v1/analyses", tags=["Analyses"])
    app.include_router(rankings.router, prefix="/api/v1/rankings", tags=["Rankings"])
    app.include_router(scoring.router, prefix="/api/v1/scoring", tags=["Scoring"])

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception", path=request.url.path, error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "request_id": request.headers.get("x-request-id")},
        )

    return app


app = create_application()
