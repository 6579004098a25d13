"""Per-booking mutual exclusion for in-process writers."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from jasaku.core.exceptions import Conflict

logger = logging.getLogger(__name__)


class BookingLockRegistry:
    """One asyncio.Lock per booking id, dropped once nobody holds or waits on it."""

    def __init__(self, timeout: float | None = None) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}
        self._timeout = timeout

    def __len__(self) -> int:
        return len(self._locks)

    def is_locked(self, booking_id: str) -> bool:
        lock = self._locks.get(booking_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, booking_id: str) -> AsyncIterator[None]:
        """Hold the booking's lock for the duration of the block.

        Raises:
            Conflict: If the lock is not acquired within the configured timeout
        """
        lock = self._locks.setdefault(booking_id, asyncio.Lock())
        self._waiters[booking_id] = self._waiters.get(booking_id, 0) + 1
        try:
            try:
                # Acquire in this task; a cancelled acquire never leaves the lock held.
                async with asyncio.timeout(self._timeout):
                    await lock.acquire()
            except TimeoutError:
                logger.warning("Timed out waiting for booking lock %s", booking_id)
                raise Conflict("Another update for this booking is still in progress")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._waiters[booking_id] -= 1
            if self._waiters[booking_id] == 0:
                del self._waiters[booking_id]
                self._locks.pop(booking_id, None)
