"""
Keyed Locks

One mutex per key (e.g. per property id) so that work on different keys
never contends. Acquisition is bounded by a timeout, and a key's entry is
dropped once nobody holds or waits on it.
"""

from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List
import logging
import threading

logger = logging.getLogger(__name__)


class LockTimeout(Exception):
    """Raised when a keyed lock could not be acquired in time"""

    def __init__(self, key: Hashable, timeout: float):
        self.key = key
        self.timeout = timeout
        super().__init__(f"Could not acquire lock for {key} within {timeout}s")


class KeyedLockRegistry:
    """
    Registry of per-key locks

    Usage:
        locks = KeyedLockRegistry(timeout=5)
        with locks.hold(property_id):
            ...  # check-and-write for this property only
    """

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        # key -> [lock, number of holders and waiters]
        self._locks: Dict[Hashable, List] = {}
        self._registry_lock = threading.Lock()

    def _checkout(self, key: Hashable) -> threading.Lock:
        with self._registry_lock:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: Hashable):
        with self._registry_lock:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: Hashable, timeout: float | None = None) -> Iterator[None]:
        wait = self.timeout if timeout is None else timeout
        lock = self._checkout(key)
        try:
            if not lock.acquire(timeout=wait):
                logger.warning(f"Timed out after {wait}s waiting for lock {key}")
                raise LockTimeout(key, wait)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)

    def __len__(self) -> int:
        """Number of keys currently held or waited on"""
        return len(self._locks)
