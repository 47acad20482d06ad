from __future__ import annotations

from keythrottle.api.routes.health import router as health_router
from keythrottle.api.routes.throttle import router as throttle_router

__all__ = ["health_router", "throttle_router"]
