import pytest

import fetchtoken.persistence as persistence
from fetchtoken.models import Identity


class FakeClock:
    """Controllable stand-in for ``unix_now``."""

    def __init__(self, now: int = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def identity() -> Identity:
    return Identity(id="7", name="alice", credential="s3cret-hash")


@pytest.fixture(autouse=True)
def _reset_repository(monkeypatch):
    monkeypatch.delenv("FETCHTOKEN_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("FETCHTOKEN_TOKEN_TIMEOUT", raising=False)
    monkeypatch.setenv("FETCHTOKEN_CONFIG", "does-not-exist.yaml")
    persistence._repository_instance = None
    yield
    persistence._repository_instance = None
