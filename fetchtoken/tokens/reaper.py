"""Garbage collection of time-expired tokens."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..config import DEFAULT_TOKEN_TIMEOUT
from ..errors import StorageError
from ..persistence import TokenRepository
from ..utils.time import Clock, unix_now

logger = logging.getLogger(__name__)


class ExpiryReaper:
    """Delete tokens issued more than ``timeout`` seconds ago.

    Rows are removed regardless of their remaining uses. Failures are logged
    and swallowed so the invoking scheduler carries on with its other work.
    """

    def __init__(
        self,
        repository: TokenRepository,
        timeout: int = DEFAULT_TOKEN_TIMEOUT,
        clock: Clock = unix_now,
    ) -> None:
        self._repository = repository
        self.timeout = timeout
        self._clock = clock

    async def sweep(self) -> int:
        """Run one purge and return the number of rows removed."""
        cutoff = self._clock() - self.timeout
        try:
            removed = await self._repository.delete_where_issued_before(cutoff)
        except StorageError:
            logger.error("Expired token sweep failed", exc_info=True)
            return 0
        logger.info(f"Expired token sweep removed {removed} token(s)")
        return removed

    async def run(self, interval: float = 60.0, lifespan: Optional[float] = None) -> int:
        """Sweep every ``interval`` seconds.

        Args:
            interval: Seconds to wait between sweeps.
            lifespan: Stop after this many seconds. If None, runs indefinitely.

        Returns:
            Total number of rows removed across all sweeps.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + lifespan if lifespan is not None else None
        total = 0
        while True:
            total += await self.sweep()
            if deadline is not None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                await asyncio.sleep(min(interval, remaining))
                if loop.time() >= deadline:
                    break
            else:
                await asyncio.sleep(interval)
        return total
