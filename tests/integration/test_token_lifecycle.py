import time

import pytest

from fetchtoken import (
    Denied,
    Identity,
    ValidationCache,
    issue_token,
    reap_expired_tokens,
    validate_token,
)
from fetchtoken.config import FetchTokenConfig
from fetchtoken.persistence import SQLiteTokenRepository, get_repository


@pytest.mark.asyncio
async def test_lifecycle_against_sqlite(tmp_path):
    repo = SQLiteTokenRepository(tmp_path / "tokens.db")
    viewer = Identity(id="12", name="viewer", credential="hash")

    token = await issue_token("obj:1", "JPG", viewer, uses=2, repository=repo)

    # The image server fetches twice within one request context
    cache = ValidationCache()
    assert await validate_token("obj:1", "JPG", token, cache=cache, repository=repo) == viewer
    assert await validate_token("obj:1", "JPG", token, cache=cache, repository=repo) == viewer
    assert await repo.count() == 1

    # A second request consumes the last use
    assert await validate_token("obj:1", "JPG", token, repository=repo) == viewer
    assert await repo.count() == 0

    denied = await validate_token("obj:1", "JPG", token, repository=repo)
    assert isinstance(denied, Denied)


@pytest.mark.asyncio
async def test_expired_tokens_are_reaped(tmp_path):
    repo = SQLiteTokenRepository(tmp_path / "tokens.db")
    viewer = Identity(id="12", name="viewer")
    await repo.insert("a" * 64, viewer, "obj:1", "TN", 0, 5)
    fresh = await issue_token("obj:1", "TN", viewer, repository=repo)

    removed = await reap_expired_tokens(repository=repo)

    assert removed == 1
    assert await repo.count() == 1
    assert await validate_token("obj:1", "TN", fresh, repository=repo) == viewer


@pytest.mark.asyncio
async def test_configured_timeout_is_honoured(tmp_path):
    repo = SQLiteTokenRepository(tmp_path / "tokens.db")
    viewer = Identity(id="12", name="viewer")
    # Issued 100 seconds ago: fresh under the default, stale under a 60s lifetime
    await repo.insert("b" * 64, viewer, "obj:1", "TN", int(time.time()) - 100, 1)

    short = FetchTokenConfig(token_timeout=60)
    assert isinstance(
        await validate_token("obj:1", "TN", "b" * 64, repository=repo, config=short), Denied
    )
    assert await validate_token("obj:1", "TN", "b" * 64, repository=repo) == viewer


@pytest.mark.asyncio
async def test_facade_uses_configured_repository(tmp_path, monkeypatch):
    monkeypatch.setenv("FETCHTOKEN_DATABASE_URL", f"sqlite://{tmp_path / 'tokens.db'}")
    viewer = Identity(id="12", name="viewer")

    token = await issue_token("obj:9", "OBJ", viewer)

    assert isinstance(get_repository(), SQLiteTokenRepository)
    assert await validate_token("obj:9", "OBJ", token) == viewer


@pytest.mark.asyncio
async def test_reaping_with_unopenable_store_does_not_raise(tmp_path, monkeypatch, caplog):
    missing = tmp_path / "missing" / "dir" / "tokens.db"
    monkeypatch.setenv("FETCHTOKEN_DATABASE_URL", f"sqlite://{missing}")

    removed = await reap_expired_tokens()

    assert removed == 0
    assert "token store unavailable" in caplog.text
