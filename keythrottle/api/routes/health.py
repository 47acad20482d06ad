from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from keythrottle.core.rate_limit import get_throttle
from keythrottle.throttle.limiter import Throttle

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(throttle: Annotated[Throttle, Depends(get_throttle)]) -> dict:
    """Report liveness and which token table shape the throttle runs on."""

    return {"status": "ok", "token_table": throttle.table_mode}
