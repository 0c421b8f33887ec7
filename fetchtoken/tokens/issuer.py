"""Access token issuance."""

from __future__ import annotations

import logging
import secrets

from ..models import Identity
from ..persistence import TokenRepository
from ..utils.time import Clock, unix_now

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


class TokenIssuer:
    """Mint opaque tokens granting delegated access to one resource part.

    The token is a pure capability reference: 256 random bits rendered as
    hex, with all state kept server-side in the repository.
    """

    def __init__(self, repository: TokenRepository, clock: Clock = unix_now) -> None:
        self._repository = repository
        self._clock = clock

    async def issue(
        self,
        resource_id: str,
        sub_resource_id: str,
        identity: Identity,
        uses: int = 1,
    ) -> str:
        """Create and persist a token, returning its string value.

        Raises:
            ValueError: if ``uses`` is less than one.
            StorageError: if the row could not be written; no token was granted.
        """
        if uses < 1:
            raise ValueError("A token must allow at least one use")

        token = secrets.token_hex(TOKEN_BYTES)
        await self._repository.insert(
            token, identity, resource_id, sub_resource_id, self._clock(), uses
        )
        logger.info(
            f"Issued access token for {resource_id}/{sub_resource_id}"
        )
        return token
