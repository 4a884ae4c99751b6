# promo-allocation-backend/app/services/locks.py
"""
Per-pool mutual exclusion for allocation attempts.

Database row locks (SELECT ... FOR UPDATE) serialize attempts on MySQL and
PostgreSQL. SQLite has no row locks, so attempts against the same pool are
also serialized in-process here. The lock is held for the whole unit of work
and released on commit or rollback.
"""

import logging
import threading
import weakref
from contextlib import contextmanager
from typing import Optional

from app.core.config import settings
from app.core.errors import TransientAllocationError

logger = logging.getLogger(__name__)


class PoolLockRegistry:
    def __init__(self, timeout: Optional[float] = None):
        self.timeout = settings.LOCK_TIMEOUT_SECONDS if timeout is None else timeout
        self._guard = threading.Lock()
        # Entries vanish once no request holds or waits on the lock, so
        # unknown pool ids cannot grow the registry
        self._locks: "weakref.WeakValueDictionary[int, threading.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, pool_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(pool_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[pool_id] = lock
            return lock

    @contextmanager
    def hold(self, pool_id: int):
        lock = self._lock_for(pool_id)
        if not lock.acquire(timeout=self.timeout):
            logger.warning("Lock wait on pool %s exceeded %.1fs", pool_id, self.timeout)
            raise TransientAllocationError(f"Timed out waiting for pool {pool_id}")
        try:
            yield
        finally:
            lock.release()


pool_locks = PoolLockRegistry()
