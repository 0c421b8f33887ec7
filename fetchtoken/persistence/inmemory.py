"""In-memory implementation of the token repository."""

from __future__ import annotations

from typing import Dict, Tuple

from ..errors import StorageError
from ..models import Identity, TokenRecord
from .repository import TokenRepository

_Key = Tuple[str, str, str]


class InMemoryTokenRepository(TokenRepository):
    """Store tokens in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._rows: Dict[_Key, TokenRecord] = {}

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
        key = (token, resource_id, sub_resource_id)
        if key in self._rows:
            raise StorageError("Duplicate access token row")
        self._rows[key] = TokenRecord(
            token=token,
            identity=identity,
            resource_id=resource_id,
            sub_resource_id=sub_resource_id,
            issued_at=issued_at,
            remaining_uses=uses,
        )

    async def find(
        self,
        resource_id: str,
        sub_resource_id: str,
        token: str,
        not_before: int,
        not_after: int,
    ) -> TokenRecord | None:
        row = self._rows.get((token, resource_id, sub_resource_id))
        if row is None or not (not_before < row.issued_at <= not_after):
            return None
        return row.model_copy()

    async def update_remaining_uses(
        self, token: str, resource_id: str, sub_resource_id: str, new_value: int
    ) -> None:
        row = self._rows.get((token, resource_id, sub_resource_id))
        if row:
            row.remaining_uses = new_value

    async def delete(self, token: str, resource_id: str, sub_resource_id: str) -> int:
        return int(self._rows.pop((token, resource_id, sub_resource_id), None) is not None)

    async def delete_where_issued_before(self, cutoff: int) -> int:
        expired = [key for key, row in self._rows.items() if row.issued_at < cutoff]
        for key in expired:
            self._rows.pop(key, None)
        return len(expired)

    async def count(self) -> int:
        return len(self._rows)
