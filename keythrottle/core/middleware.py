"""HTTP middleware for request ID propagation and timing.

Every response carries the correlation id and its duration, and each request
ends with one ``http.request`` log line. Throttled responses (429) are
flagged on that line so rejected traffic can be counted without parsing
route logs.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response, status

from keythrottle.core.config import settings
from keythrottle.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)


async def request_id_middleware(request: Request, call_next) -> Response:
    """Tag every request/response pair with a correlation id.

    The incoming header named by ``LOG_REQUEST_ID_HEADER`` (default
    X-Request-ID) is reused when present, otherwise a UUID4 is generated. The
    id lives in a context variable until the completion line is logged, so
    throttle decisions made while serving the request carry it too. The
    completion line logs the route template, never the raw path, because
    paths can embed throttle keys.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        throttled = response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        logger.log(
            logging.WARNING if throttled else logging.INFO,
            "http.request",
            extra={
                "method": request.method,
                "route": getattr(request.scope.get("route"), "path", None),
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "throttled": throttled,
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
