from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from wickcity.services.container import ServiceContainer
from wickcity.services.rate_limiter import RateLimiter

RATE_LIMITED_DETAIL = "Too many requests. Please wait a moment and try again."


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def client_id(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _enforce(limiter: RateLimiter, request: Request) -> None:
    decision = limiter.hit(client_id(request))
    if not decision.allowed:
        raise HTTPException(
            status_code=429,
            detail=RATE_LIMITED_DETAIL,
            headers={"Retry-After": str(decision.retry_after)},
        )


def general_rate_limit(
    request: Request,
    services: ServiceContainer = Depends(get_services),
) -> None:
    _enforce(services.general_limiter, request)


def search_rate_limit(
    request: Request,
    services: ServiceContainer = Depends(get_services),
) -> None:
    _enforce(services.search_limiter, request)
