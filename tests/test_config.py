"""Tests for environment-driven throttle settings."""

import pytest
from pydantic import ValidationError

from keythrottle.core.config import ThrottleSettings
from keythrottle.throttle.factory import create_throttle


def test_reads_throttle_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("THROTTLE_RATE", "3")
    monkeypatch.setenv("THROTTLE_BURST", "6")
    monkeypatch.setenv("THROTTLE_WINDOW_MS", "500")
    monkeypatch.setenv("THROTTLE_OVERRIDES", '{"partner": {"rate": 30, "burst": 60}}')

    cfg = ThrottleSettings()

    assert cfg.rate == 3
    assert cfg.burst == 6
    assert cfg.window_ms == 500
    assert cfg.overrides == {"partner": {"rate": 30, "burst": 60}}

    throttle = create_throttle(cfg)
    assert throttle.limits_for("partner") == (30, 60, 1000)


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("RATE", "BURST", "WINDOW_MS", "MAX_KEYS", "OVERRIDES"):
        monkeypatch.delenv(f"THROTTLE_{name}", raising=False)

    cfg = ThrottleSettings()

    assert cfg.rate == 10
    assert cfg.burst is None
    assert cfg.window_ms == 1000
    assert cfg.max_keys == 10000
    assert cfg.overrides == {}


@pytest.mark.parametrize(
    ("name", "value"),
    [("THROTTLE_RATE", "0"), ("THROTTLE_WINDOW_MS", "0"), ("THROTTLE_MAX_KEYS", "0")],
)
def test_rejects_invalid_values(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        ThrottleSettings()
