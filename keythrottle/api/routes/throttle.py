from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from keythrottle.core.config import settings
from keythrottle.core.errors import StorageReadError
from keythrottle.core.logging import hash_throttle_key
from keythrottle.core.rate_limit import enforce_rate_limit, get_throttle
from keythrottle.schemas.throttle import (
    ThrottleCheckRequest,
    ThrottleCheckResponse,
    ThrottleLimitsResponse,
)
from keythrottle.throttle.limiter import Throttle

router = APIRouter(tags=["Throttle"])


@router.post("/throttle/check", response_model=ThrottleCheckResponse)
async def check_key(
    payload: ThrottleCheckRequest,
    throttle: Annotated[Throttle, Depends(get_throttle)],
) -> ThrottleCheckResponse:
    """Consume one token for ``payload.key`` and return the decision.

    A table read failure is raised and rendered as 503 by the exception
    handlers. A write failure still returns the decision, flagged with
    ``persisted=false``.
    """
    if not settings.app.throttle_enabled:
        return ThrottleCheckResponse(limited=None)

    decision = await throttle.check(payload.key)
    if isinstance(decision.error, StorageReadError):
        raise decision.error

    return ThrottleCheckResponse(
        limited=decision.limited,
        persisted=decision.error is None,
    )


@router.get(
    "/throttle/limits/{key}",
    response_model=ThrottleLimitsResponse,
    dependencies=[Depends(enforce_rate_limit)],
)
async def get_limits(
    key: str,
    throttle: Annotated[Throttle, Depends(get_throttle)],
) -> ThrottleLimitsResponse:
    """Return the rate/burst/window that apply to ``key`` (overrides included).

    Lookups are themselves throttled per caller.
    """
    limits = throttle.limits_for(key)
    return ThrottleLimitsResponse(
        key_hash=hash_throttle_key(key),
        enabled=limits.enabled,
        rate=limits.rate,
        burst=limits.burst,
        window_ms=limits.window,
        retry_after_seconds=throttle.retry_after_seconds(key),
    )
