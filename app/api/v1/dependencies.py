"""
Request-scoped collaborators for the routes.

Long-lived objects (datastore, rate limiter, Redis pool) are created in the
application lifespan and kept on app.state; routes receive them through
these dependencies so tests can override them.
"""

from typing import Annotated

from fastapi import Depends, Request

from app.core.rate_limit import RateLimiter
from app.engines.validator.engine import URLSafetyValidator
from app.services.datastore import Datastore


def get_datastore(request: Request) -> Datastore:
    return request.app.state.datastore


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_url_validator() -> URLSafetyValidator:
    return URLSafetyValidator()


def client_address(request: Request) -> str:
    """First X-Forwarded-For hop when behind a proxy, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


DatastoreDep = Annotated[Datastore, Depends(get_datastore)]
RateLimiterDep = Annotated[RateLimiter, Depends(get_rate_limiter)]
ValidatorDep = Annotated[URLSafetyValidator, Depends(get_url_validator)]
