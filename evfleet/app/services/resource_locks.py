"""
Per-resource locking for trip scheduling.

Every scheduling write holds exclusive locks on the vehicle and driver keys it
touches for the whole validate-then-write section. Keys are always acquired
in sorted order, so two writers touching the same pair in opposite order
cannot deadlock. There is no global lock.
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import Iterable, List

from evfleet.app.services.interval_index import ResourceKey

logger = logging.getLogger("evfleet.resource_locks")


class ResourceLockManager:
    """
    Hands out one ``asyncio.Lock`` per resource key.

    Locks live in a ``WeakValueDictionary``: a key's lock disappears once no
    writer holds or waits on it.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[ResourceKey, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, key: ResourceKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @staticmethod
    def ordered(keys: Iterable[ResourceKey]) -> List[ResourceKey]:
        """Deduplicated keys in acquisition order."""
        return sorted(set(keys))

    @asynccontextmanager
    async def hold(self, keys: Iterable[ResourceKey]):
        """
        Acquire the locks of ``keys`` in sorted order; release in reverse.

        Yields the ordered key list.
        """
        ordered_keys = self.ordered(keys)
        # Strong references for the duration of the critical section
        locks = [self._lock_for(key) for key in ordered_keys]
        acquired: List[asyncio.Lock] = []
        try:
            for lock in locks:
                await lock.acquire()
                acquired.append(lock)
            logger.debug("Locked %s", ", ".join(str(k) for k in ordered_keys))
            yield ordered_keys
        finally:
            for lock in reversed(acquired):
                lock.release()

    def is_locked(self, key: ResourceKey) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()
