"""Shared test fixtures."""

from __future__ import annotations

import pytest

from piano_studio.core.config import ConfigManager


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config(tmp_path):
    """ConfigManager backed by a temporary directory."""
    return ConfigManager(config_dir=tmp_path / "config")
