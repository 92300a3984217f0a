"""
The queue lock.

Every mutation of the queue, the submitter log and the tracked transaction
set happens while holding this single lock. Acquisition is bounded: a caller
that cannot get the lock in time receives LockTimeoutError and nothing has
been changed on its behalf.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from .exceptions import LockTimeoutError


class QueueLock:
    """Named mutual-exclusion lock with a bounded-wait acquire."""

    def __init__(self, name: str = "queue", timeout_seconds: float = 30.0) -> None:
        self._name = name
        self._timeout = timeout_seconds
        self._lock = asyncio.Lock()
        self._holder: Optional[str] = None

    async def _acquire(self) -> bool:
        """Wait up to the timeout for the lock; True if it is now held."""
        acquire = asyncio.ensure_future(self._lock.acquire())
        try:
            done, _ = await asyncio.wait({acquire}, timeout=self._timeout)
        finally:
            if not acquire.done():
                acquire.cancel()
        if done:
            return acquire.result()

        await asyncio.wait({acquire})
        if not acquire.cancelled() and acquire.exception() is None:
            # granted while the timeout was cancelling the wait
            self._lock.release()
        return False

    @asynccontextmanager
    async def hold(self, operation: str) -> AsyncIterator[None]:
        """
        Hold the lock for the duration of the block.

        Usage:
            async with queue_lock.hold("submit_batch"):
                ...

        Args:
            operation: Name of the critical section, reported on timeout

        Raises:
            LockTimeoutError: If the lock was not obtained within the timeout
        """
        if not await self._acquire():
            raise LockTimeoutError(
                code="lock_timeout",
                message="Failed to obtain lock",
                details={
                    "lock": self._name,
                    "operation": operation,
                    "held_by": self._holder,
                    "timeout_seconds": self._timeout,
                },
            )

        self._holder = operation
        try:
            yield
        finally:
            self._holder = None
            self._lock.release()

    def locked(self) -> bool:
        return self._lock.locked()

    @property
    def holder(self) -> Optional[str]:
        return self._holder

    @property
    def name(self) -> str:
        return self._name
