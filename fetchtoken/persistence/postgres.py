"""PostgreSQL implementation of the token repository."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import asyncpg

from ..errors import StorageError
from ..models import Identity, TokenRecord
from .repository import TokenRepository

_DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


def _affected_rows(status: str) -> int:
    # asyncpg returns the command tag, e.g. "DELETE 3"
    try:
        return int(status.rsplit(" ", 1)[-1])
    except ValueError:
        return 0


class PostgresTokenRepository(TokenRepository):
    """Persist access tokens using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            try:
                await self._ensure_schema(conn)
            except BaseException:
                await conn.close()
                raise
            self._initialized = True
        return conn

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        try:
            conn = await self._connect()
        except _DRIVER_ERRORS as exc:
            raise StorageError("Cannot connect to the Postgres token store") from exc
        try:
            yield conn
        except _DRIVER_ERRORS as exc:
            raise StorageError("Postgres token store operation failed") from exc
        finally:
            await conn.close()

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS access_tokens (
                token TEXT NOT NULL,
                resource_id TEXT NOT NULL,
                sub_resource_id TEXT NOT NULL,
                identity_id TEXT NOT NULL,
                identity_name TEXT NOT NULL,
                identity_credential TEXT,
                issued_at BIGINT NOT NULL,
                remaining_uses INTEGER NOT NULL,
                PRIMARY KEY (token, resource_id, sub_resource_id)
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS access_tokens_issued_at ON access_tokens (issued_at)"
        )

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
        async with self._connection() as conn:
            await conn.execute(
                """
                INSERT INTO access_tokens (
                    token, resource_id, sub_resource_id,
                    identity_id, identity_name, identity_credential,
                    issued_at, remaining_uses
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                """,
                token,
                resource_id,
                sub_resource_id,
                identity.id,
                identity.name,
                identity.credential,
                issued_at,
                uses,
            )

    async def find(
        self,
        resource_id: str,
        sub_resource_id: str,
        token: str,
        not_before: int,
        not_after: int,
    ) -> TokenRecord | None:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                """
                SELECT * FROM access_tokens
                WHERE token = $1 AND resource_id = $2 AND sub_resource_id = $3
                  AND issued_at > $4 AND issued_at <= $5
                """,
                token,
                resource_id,
                sub_resource_id,
                not_before,
                not_after,
            )
        if not row:
            return None
        return TokenRecord(
            token=row["token"],
            identity=Identity(
                id=row["identity_id"],
                name=row["identity_name"],
                credential=row["identity_credential"],
            ),
            resource_id=row["resource_id"],
            sub_resource_id=row["sub_resource_id"],
            issued_at=row["issued_at"],
            remaining_uses=row["remaining_uses"],
        )

    async def update_remaining_uses(
        self, token: str, resource_id: str, sub_resource_id: str, new_value: int
    ) -> None:
        async with self._connection() as conn:
            await conn.execute(
                """
                UPDATE access_tokens SET remaining_uses = $1
                WHERE token = $2 AND resource_id = $3 AND sub_resource_id = $4
                """,
                new_value,
                token,
                resource_id,
                sub_resource_id,
            )

    async def delete(self, token: str, resource_id: str, sub_resource_id: str) -> int:
        async with self._connection() as conn:
            status = await conn.execute(
                "DELETE FROM access_tokens WHERE token = $1 AND resource_id = $2 AND sub_resource_id = $3",
                token,
                resource_id,
                sub_resource_id,
            )
        return _affected_rows(status)

    async def delete_where_issued_before(self, cutoff: int) -> int:
        async with self._connection() as conn:
            status = await conn.execute(
                "DELETE FROM access_tokens WHERE issued_at < $1", cutoff
            )
        return _affected_rows(status)

    async def count(self) -> int:
        async with self._connection() as conn:
            return await conn.fetchval("SELECT COUNT(*) FROM access_tokens")
