"""Application factory for the throttle decision service."""

from __future__ import annotations

from fastapi import FastAPI

from keythrottle.api.routes import health_router, throttle_router
from keythrottle.core.config import settings
from keythrottle.core.exception_handlers import setup_exception_handlers
from keythrottle.core.logging import configure_logging
from keythrottle.core.middleware import request_id_middleware


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="keythrottle",
        description=(
            "Keyed token-bucket throttle. POST a key to /v1/throttle/check to "
            "consume one token and learn whether the action should be rejected."
        ),
        version="0.1.0",
        debug=settings.app.debug,
    )

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(throttle_router, prefix="/v1")
    app.include_router(health_router)

    return app
