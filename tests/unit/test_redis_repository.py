import os
import secrets

import pytest

from fetchtoken.errors import StorageError
from fetchtoken.persistence import RedisTokenRepository


async def _repo_or_skip() -> RedisTokenRepository:
    url = os.getenv("TEST_REDIS_URL", "redis://localhost:6379/15")
    try:
        repo = RedisTokenRepository(url=url, key_prefix=f"fetchtoken-test-{secrets.token_hex(4)}")
        await repo.connect()
    except Exception:
        pytest.skip("Redis server not available")
    return repo


@pytest.mark.asyncio
async def test_redis_repository_crud(identity):
    repo = await _repo_or_skip()
    token = secrets.token_hex(32)
    try:
        await repo.insert(token, identity, "obj:1", "thumb", 1000, 2)
        with pytest.raises(StorageError):
            await repo.insert(token, identity, "obj:1", "thumb", 1000, 2)

        row = await repo.find("obj:1", "thumb", token, 900, 1000)
        assert row is not None
        assert row.identity == identity
        assert row.remaining_uses == 2
        assert await repo.find("obj:1", "thumb", token, 1000, 1300) is None
        assert await repo.find("obj", "1:thumb", token, 900, 1000) is None

        await repo.update_remaining_uses(token, "obj:1", "thumb", 1)
        row = await repo.find("obj:1", "thumb", token, 900, 1000)
        assert row.remaining_uses == 1

        assert await repo.delete(token, "obj:1", "thumb") == 1
        assert await repo.delete(token, "obj:1", "thumb") == 0
        assert await repo.find("obj:1", "thumb", token, 900, 1000) is None
        assert await repo.count() == 0

        # A use recorded after deletion must not resurrect the row
        await repo.update_remaining_uses(token, "obj:1", "thumb", 1)
        assert await repo.count() == 0
    finally:
        await repo.disconnect()


@pytest.mark.asyncio
async def test_redis_delete_where_issued_before(identity):
    repo = await _repo_or_skip()
    try:
        for i, issued_at in enumerate([100, 200, 300]):
            await repo.insert(f"{i:064x}", identity, "obj:1", "thumb", issued_at, 1)

        assert await repo.delete_where_issued_before(300) == 2
        assert await repo.count() == 1
        assert await repo.delete_where_issued_before(300) == 0
        await repo.delete_where_issued_before(10_000)
    finally:
        await repo.disconnect()


class FakeRedisClient:
    def __init__(self) -> None:
        self.closed = False

    async def ping(self):
        from redis.exceptions import ConnectionError

        raise ConnectionError("connection refused")

    async def aclose(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_failed_ping_leaves_repository_disconnected(monkeypatch):
    from fetchtoken.persistence import redis as redis_store

    clients = []

    def fake_from_url(url, **kwargs):
        client = FakeRedisClient()
        clients.append(client)
        return client

    monkeypatch.setattr(redis_store.redis.Redis, "from_url", fake_from_url)
    repo = RedisTokenRepository(url="redis://unused:6379/0")

    for _ in range(2):
        with pytest.raises(StorageError):
            await repo.count()

    assert repo._redis is None
    # Each call retries the connection instead of reusing an unverified client
    assert len(clients) == 2
    assert all(client.closed for client in clients)
