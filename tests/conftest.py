"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before anything imports the settings module.
"""

from __future__ import annotations

import os

os.environ["APP_ENV"] = "testing"
os.environ.setdefault("THROTTLE_RATE", "10")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import pytest  # noqa: E402


class FakeClock:
    """Deterministic millisecond clock used to drive bucket replenishment."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, ms: float) -> None:
        self.current += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
