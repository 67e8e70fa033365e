"""Mutual exclusion over the shared working tree.

asyncio.Lock hands the lock to waiters in the order they started waiting and
does not let a newcomer overtake queued waiters, so a burst of style checks
cannot starve a format workflow.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from formatbot_core.errors import LockTimeout

logger = logging.getLogger(__name__)


class WorkingTreeLock:
    def __init__(self, acquire_timeout: Optional[float] = None):
        self._lock = asyncio.Lock()
        self._acquire_timeout = acquire_timeout
        self.holder: Optional[int] = None

    def locked(self) -> bool:
        return self._lock.locked()

    async def _abandon(self, acquire: asyncio.Future) -> None:
        # A grant can land in the same loop iteration as the cancel; hand it back.
        acquire.cancel()
        await asyncio.wait({acquire})
        if not acquire.cancelled() and acquire.exception() is None:
            self._lock.release()

    @asynccontextmanager
    async def hold(self, pr_id: int) -> AsyncIterator[None]:
        """Hold the working tree for PR ``pr_id``; released on every exit path."""
        logger.debug("PR #%d waiting for the working tree", pr_id)
        if self._acquire_timeout is None:
            await self._lock.acquire()
        else:
            acquire = asyncio.ensure_future(self._lock.acquire())
            try:
                done, _ = await asyncio.wait({acquire}, timeout=self._acquire_timeout)
            except asyncio.CancelledError:
                await self._abandon(acquire)
                raise
            if not done:
                await self._abandon(acquire)
                raise LockTimeout(f"PR #{pr_id} could not acquire the working tree within {self._acquire_timeout}s")

        self.holder = pr_id
        logger.debug("PR #%d holds the working tree", pr_id)
        try:
            yield
        finally:
            self.holder = None
            self._lock.release()
            logger.debug("PR #%d released the working tree", pr_id)
