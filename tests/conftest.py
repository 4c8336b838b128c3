import os
from pathlib import Path

import pytest

# keep console logging out of CliRunner output
os.environ.setdefault("AUTOHEAL_LOG_LEVEL", "WARNING")

from autoheal.utils.config import get_settings


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch):
    """Point the cache at a throwaway directory and reload settings around each test."""
    monkeypatch.setenv("AUTOHEAL_CACHE_DIR", str(tmp_path / "autoheal-cache"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
