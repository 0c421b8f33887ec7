"""Redis implementation of the token repository."""

from __future__ import annotations

import hashlib
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..errors import StorageError
from ..models import Identity, TokenRecord
from .repository import TokenRepository

# HSET on a row that was deleted concurrently would resurrect a partial hash.
_UPDATE_IF_EXISTS = """
if redis.call('EXISTS', KEYS[1]) == 1 then
    return redis.call('HSET', KEYS[1], 'remaining_uses', ARGV[1])
end
return 0
"""


class RedisTokenRepository(TokenRepository):
    """Persist access tokens in Redis.

    Each row is a hash; a sorted set scored by ``issued_at`` indexes the rows
    for range deletes.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        key_prefix: str = "fetchtoken",
        url: Optional[str] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.key_prefix = key_prefix
        self.url = url
        self._redis: Optional[Any] = None

    @property
    def _index_key(self) -> str:
        return f"{self.key_prefix}:issued"

    def _row_key(self, token: str, resource_id: str, sub_resource_id: str) -> str:
        # Hash the triple: ids may contain the separator and tokens stay out of key names
        digest = hashlib.sha256(
            "\x1f".join((token, resource_id, sub_resource_id)).encode("utf-8")
        ).hexdigest()
        return f"{self.key_prefix}:token:{digest}"

    async def connect(self) -> None:
        """Connect to Redis."""
        if self.url:
            client = redis.Redis.from_url(self.url, decode_responses=True)
        else:
            client = redis.Redis(
                host=self.host,
                port=self.port,
                db=self.db,
                password=self.password,
                decode_responses=True,
            )
        try:
            await client.ping()
        except BaseException:
            await client.aclose()
            raise
        self._redis = client

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[Any]:
        try:
            if not self._redis:
                await self.connect()
            yield self._redis
        except RedisError as exc:
            raise StorageError("Redis token store operation failed") from exc

    # ------------------------------------------------------------------
    async def insert(
        self,
        token: str,
        identity: Identity,
        resource_id: str,
        sub_resource_id: str,
        issued_at: int,
        uses: int,
    ) -> None:
        key = self._row_key(token, resource_id, sub_resource_id)
        mapping = {
            "token": token,
            "resource_id": resource_id,
            "sub_resource_id": sub_resource_id,
            "identity_id": identity.id,
            "identity_name": identity.name,
            "issued_at": issued_at,
            "remaining_uses": uses,
        }
        if identity.credential is not None:
            mapping["identity_credential"] = identity.credential
        async with self._client() as client:
            if await client.exists(key):
                raise StorageError("Duplicate access token row")
            async with client.pipeline(transaction=True) as pipe:
                pipe.hset(key, mapping=mapping)
                pipe.zadd(self._index_key, {key: issued_at})
                await pipe.execute()

    async def find(
        self,
        resource_id: str,
        sub_resource_id: str,
        token: str,
        not_before: int,
        not_after: int,
    ) -> TokenRecord | None:
        key = self._row_key(token, resource_id, sub_resource_id)
        async with self._client() as client:
            data = await client.hgetall(key)
        if not data:
            return None
        issued_at = int(data["issued_at"])
        if not (not_before < issued_at <= not_after):
            return None
        return TokenRecord(
            token=data["token"],
            identity=Identity(
                id=data["identity_id"],
                name=data["identity_name"],
                credential=data.get("identity_credential"),
            ),
            resource_id=data["resource_id"],
            sub_resource_id=data["sub_resource_id"],
            issued_at=issued_at,
            remaining_uses=int(data["remaining_uses"]),
        )

    async def update_remaining_uses(
        self, token: str, resource_id: str, sub_resource_id: str, new_value: int
    ) -> None:
        key = self._row_key(token, resource_id, sub_resource_id)
        async with self._client() as client:
            await client.eval(_UPDATE_IF_EXISTS, 1, key, new_value)

    async def delete(self, token: str, resource_id: str, sub_resource_id: str) -> int:
        key = self._row_key(token, resource_id, sub_resource_id)
        async with self._client() as client:
            async with client.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                pipe.zrem(self._index_key, key)
                removed, _ = await pipe.execute()
        return removed

    async def delete_where_issued_before(self, cutoff: int) -> int:
        async with self._client() as client:
            keys = await client.zrangebyscore(self._index_key, "-inf", f"({cutoff}")
            if not keys:
                return 0
            async with client.pipeline(transaction=True) as pipe:
                pipe.delete(*keys)
                pipe.zrem(self._index_key, *keys)
                await pipe.execute()
        return len(keys)

    async def count(self) -> int:
        async with self._client() as client:
            return await client.zcard(self._index_key)
