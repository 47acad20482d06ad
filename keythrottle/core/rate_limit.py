"""Throttle wiring for FastAPI routes.

This module owns the process-wide throttle and the dependency that limits
callers of protected routes.

Key strategy:
- Per API key when the X-API-Key header is present.
- Otherwise per client IP.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from keythrottle.core.config import settings
from keythrottle.core.logging import hash_throttle_key
from keythrottle.throttle.factory import create_throttle
from keythrottle.throttle.limiter import Throttle

logger = logging.getLogger(__name__)


_throttle: Throttle | None = None
_throttle_config: tuple | None = None


def get_throttle() -> Throttle:
    """Return the process-wide throttle instance.

    The instance is cached in-module so bucket state survives across
    requests. If the throttle settings change (primarily in tests), it is
    rebuilt.
    """

    global _throttle, _throttle_config

    cfg = settings.throttle
    config = (
        cfg.rate,
        cfg.burst,
        cfg.window_ms,
        cfg.max_keys,
        repr(sorted(cfg.overrides.items())),
    )

    if _throttle is None or _throttle_config != config:
        _throttle = create_throttle(cfg)
        _throttle_config = config
        logger.info(
            "throttle.configured",
            extra={
                "rate": cfg.rate,
                "burst": cfg.burst or cfg.rate,
                "window_ms": cfg.window_ms,
                "max_keys": cfg.max_keys,
                "override_count": len(cfg.overrides),
            },
        )

    return _throttle


def build_caller_key(request: Request, x_api_key: str | None) -> str:
    """Build the namespaced throttle key for the current caller."""

    if x_api_key:
        return f"api_key:{x_api_key}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


async def enforce_rate_limit(
    request: Request,
    throttle: Annotated[Throttle, Depends(get_throttle)],
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency enforcing the throttle on the caller.

    Consumes one token from the caller's bucket. A failed state write is
    logged and the computed decision is still applied.

    Raises:
        StorageReadError: When the token table cannot be read (mapped to 503).
        HTTPException: 429 Too Many Requests when the caller is throttled.
    """

    if not settings.app.throttle_enabled:
        return

    key = build_caller_key(request, x_api_key)

    limited = await throttle.is_limited(key)
    if not limited:
        return

    retry_after = throttle.retry_after_seconds(key) or 1
    limits = throttle.limits_for(key)
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_type": "api_key" if x_api_key else "ip",
            "key_hash": hash_throttle_key(key),
            "retry_after_s": retry_after,
        },
    )

    headers: dict[str, str] = {}
    if settings.app.throttle_include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = f"{limits.burst:g}"
        headers["X-RateLimit-Remaining"] = "0"

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Rate limit exceeded. Try again later.",
        headers=headers or None,
    )
