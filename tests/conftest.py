import aiohttp
import pytest
from typer.testing import CliRunner
from pathlib import Path
from unittest.mock import MagicMock

from econfetch.infrastructure.cache.persistent_cache import PersistentCache
from econfetch.infrastructure.config import settings


class FakeClock:
    """Mutable epoch clock for TTL tests."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def cache(cache_dir: Path, clock: FakeClock):
    """A real on-disk cache in a temporary directory, driven by a fake clock."""
    with PersistentCache(cache_dir, default_ttl=3600, clock=clock) as c:
        yield c


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keeps tests independent of the developer's environment and config files."""
    monkeypatch.delenv("FRED_API_KEY", raising=False)
    monkeypatch.setattr(settings, "_config", {})
    monkeypatch.setattr(settings, "_loaded", False)
    settings.clear_test_config()
    yield
    settings.clear_test_config()


class FakeResponse:
    def __init__(self, status: int, body: str):
        self.status = status
        self._body = body

    async def text(self) -> str:
        return self._body


class FakeRequest:
    """Async context manager returned by the fake session's get()."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error

    async def __aenter__(self):
        if self.error is not None:
            raise self.error
        return self.response

    async def __aexit__(self, exc_type, exc, tb):
        return False


@pytest.fixture
def make_session():
    """Factory for an aiohttp session double whose get() yields one canned response."""
    def _make(status=200, body="{}", error=None):
        session = MagicMock(spec=aiohttp.ClientSession)
        session.get.return_value = FakeRequest(FakeResponse(status, body), error)
        return session
    return _make
