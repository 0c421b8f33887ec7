"""Access token redemption."""

from __future__ import annotations

import logging
from typing import Optional

from ..config import DEFAULT_TOKEN_TIMEOUT
from ..errors import StorageError
from ..models import Denied, Identity, Verdict
from ..persistence import TokenRepository
from ..utils.time import Clock, unix_now
from .cache import ValidationCache

logger = logging.getLogger(__name__)


class TokenValidator:
    """Redeem tokens against the store, counting down their use budget.

    A token is redeemable while ``now - timeout < issued_at <= now``. Each
    grant consumes one use; the row is deleted on its final use rather than
    left at zero.

    Decrementing is read-then-write, so concurrent redemptions of the same
    multi-use row may miscount. The final use is granted only to the caller
    whose delete actually removed the row; racing callers are denied.
    """

    def __init__(
        self,
        repository: TokenRepository,
        timeout: int = DEFAULT_TOKEN_TIMEOUT,
        cache: Optional[ValidationCache] = None,
        clock: Clock = unix_now,
    ) -> None:
        self._repository = repository
        self.timeout = timeout
        self.cache = cache if cache is not None else ValidationCache()
        self._clock = clock

    async def validate(
        self, resource_id: str, sub_resource_id: str, token: str
    ) -> Verdict:
        """Return the bound :class:`Identity` or a :class:`Denied` verdict."""
        key = (resource_id, sub_resource_id, token)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Validation cache hit for {resource_id}/{sub_resource_id}")
            return cached

        now = self._clock()
        try:
            record = await self._repository.find(
                resource_id,
                sub_resource_id,
                token,
                not_before=now - self.timeout,
                not_after=now,
            )
        except StorageError:
            # Fail closed; not cached so a retry in this context can succeed
            logger.warning(
                f"Token lookup failed for {resource_id}/{sub_resource_id}; denying",
                exc_info=True,
            )
            return Denied(reason="storage_error")

        if record is None:
            logger.debug(f"No redeemable token for {resource_id}/{sub_resource_id}")
            verdict: Verdict = Denied(reason="not_found")
            self.cache.put(key, verdict)
            return verdict

        consumed = await self._consume_use(
            token, resource_id, sub_resource_id, record.remaining_uses
        )
        if not consumed:
            logger.info(
                f"Final use of token for {resource_id}/{sub_resource_id} already taken; denying"
            )
            verdict = Denied(reason="not_found")
            self.cache.put(key, verdict)
            return verdict

        verdict = record.identity
        self.cache.put(key, verdict)
        logger.info(f"Granted access token for {resource_id}/{sub_resource_id}")
        return verdict

    async def _consume_use(
        self, token: str, resource_id: str, sub_resource_id: str, remaining_uses: int
    ) -> bool:
        """Record one use; return False if another redemption removed the row first."""
        remaining = remaining_uses - 1
        try:
            if remaining <= 0:
                removed = await self._repository.delete(token, resource_id, sub_resource_id)
                if not removed:
                    return False
                logger.info(
                    f"Access token for {resource_id}/{sub_resource_id} exhausted and removed"
                )
            else:
                await self._repository.update_remaining_uses(
                    token, resource_id, sub_resource_id, remaining
                )
        except StorageError:
            # The grant was decided on a row that existed; keep it
            logger.error(
                f"Failed to record token use for {resource_id}/{sub_resource_id}",
                exc_info=True,
            )
        return True
