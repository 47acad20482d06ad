"""Pydantic schemas for the throttle decision API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ThrottleCheckRequest(BaseModel):
    """Request to consume one token for a key."""

    key: str | None = Field(
        default=None,
        description="Throttle key (API token, client id...). Null bypasses limiting.",
    )


class ThrottleCheckResponse(BaseModel):
    """Decision for one check."""

    limited: bool | None = Field(
        ...,
        description="True to reject, false to allow, null when the key bypassed limiting.",
    )
    persisted: bool = Field(
        True,
        description="False when the decision was made but bucket state could not be saved.",
    )


class ThrottleLimitsResponse(BaseModel):
    """Effective limits resolved for a key."""

    key_hash: str = Field(..., description="Short SHA-256 prefix of the key.")
    enabled: bool = Field(..., description="Whether the key is limited at all.")
    rate: float | None = Field(None, description="Tokens replenished per window.")
    burst: float | None = Field(None, description="Bucket capacity.")
    window_ms: float = Field(..., description="Refill window in milliseconds.")
    retry_after_seconds: int | None = Field(
        None,
        description="Seconds for one token to accrue once the bucket is empty.",
    )
