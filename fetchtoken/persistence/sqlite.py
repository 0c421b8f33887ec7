"""SQLite implementation of the token repository."""

from __future__ import annotations

import asyncio
import sqlite3
import threading
from pathlib import Path
from typing import Any

from ..errors import StorageError
from ..models import Identity, TokenRecord
from .repository import TokenRepository


def _row_to_record(row: sqlite3.Row) -> TokenRecord:
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


class SQLiteTokenRepository(TokenRepository):
    """Persist access tokens using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        # One connection is shared by the worker threads of asyncio.to_thread
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._ensure_schema()
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open token database at {self.db_path}") from exc

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS access_tokens (
                token TEXT NOT NULL,
                resource_id TEXT NOT NULL,
                sub_resource_id TEXT NOT NULL,
                identity_id TEXT NOT NULL,
                identity_name TEXT NOT NULL,
                identity_credential TEXT,
                issued_at INTEGER NOT NULL,
                remaining_uses INTEGER NOT NULL,
                PRIMARY KEY (token, resource_id, sub_resource_id)
            )
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS access_tokens_issued_at ON access_tokens (issued_at)"
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        with self._lock:
            try:
                cur = self._conn.cursor()
                cur.execute(query, params)
                self._conn.commit()
            except sqlite3.Error as exc:
                self._conn.rollback()
                raise StorageError("SQLite token store write failed") from exc
            return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._lock:
            try:
                cur = self._conn.cursor()
                cur.execute(query, params)
                return cur.fetchone()
            except sqlite3.Error as exc:
                raise StorageError("SQLite token store read failed") from exc

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Repository API
    async def insert(
        self,
        token: str,
        identity: Identity,
        resource_id: str,
        sub_resource_id: str,
        issued_at: int,
        uses: int,
    ) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO access_tokens (
                token, resource_id, sub_resource_id,
                identity_id, identity_name, identity_credential,
                issued_at, remaining_uses
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
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
        row = await asyncio.to_thread(
            self._fetchone,
            """
            SELECT * FROM access_tokens
            WHERE token = ? AND resource_id = ? AND sub_resource_id = ?
              AND issued_at > ? AND issued_at <= ?
            """,
            token,
            resource_id,
            sub_resource_id,
            not_before,
            not_after,
        )
        if not row:
            return None
        return _row_to_record(row)

    async def update_remaining_uses(
        self, token: str, resource_id: str, sub_resource_id: str, new_value: int
    ) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            UPDATE access_tokens SET remaining_uses = ?
            WHERE token = ? AND resource_id = ? AND sub_resource_id = ?
            """,
            new_value,
            token,
            resource_id,
            sub_resource_id,
        )

    async def delete(self, token: str, resource_id: str, sub_resource_id: str) -> int:
        return await asyncio.to_thread(
            self._execute,
            "DELETE FROM access_tokens WHERE token = ? AND resource_id = ? AND sub_resource_id = ?",
            token,
            resource_id,
            sub_resource_id,
        )

    async def delete_where_issued_before(self, cutoff: int) -> int:
        return await asyncio.to_thread(
            self._execute, "DELETE FROM access_tokens WHERE issued_at < ?", cutoff
        )

    async def count(self) -> int:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT COUNT(*) AS n FROM access_tokens"
        )
        return row["n"] if row else 0
