"""Repository abstraction for access token persistence."""

from __future__ import annotations

from typing import Protocol

from ..models import Identity, TokenRecord


class TokenRepository(Protocol):
    """Protocol for token store backends.

    Rows are addressed by the ``(token, resource_id, sub_resource_id)``
    triple. Backends raise :class:`~fetchtoken.errors.StorageError` when the
    store is unreachable or a write violates a constraint.
    """

    async def insert(
        self,
        token: str,
        identity: Identity,
        resource_id: str,
        sub_resource_id: str,
        issued_at: int,
        uses: int,
    ) -> None:
        """Persist a new token row."""

    async def find(
        self,
        resource_id: str,
        sub_resource_id: str,
        token: str,
        not_before: int,
        not_after: int,
    ) -> TokenRecord | None:
        """Return the row if ``not_before < issued_at <= not_after``."""

    async def update_remaining_uses(
        self, token: str, resource_id: str, sub_resource_id: str, new_value: int
    ) -> None:
        """Overwrite the remaining use count of a row."""

    async def delete(self, token: str, resource_id: str, sub_resource_id: str) -> int:
        """Remove a row and return how many rows were removed (0 or 1)."""

    async def delete_where_issued_before(self, cutoff: int) -> int:
        """Remove every row with ``issued_at < cutoff`` and return the count."""

    async def count(self) -> int:
        """Return the number of outstanding rows."""
