from __future__ import annotations

import logging
from typing import Callable, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LockStore(Protocol):
    def try_acquire_lock(self, key: int) -> bool: ...

    def release_lock(self, key: int) -> None: ...


class SingleFlightLock:
    """Storage-backed, non-blocking mutual exclusion for one job key.

    Example::

        lock = SingleFlightLock(store, 123456789)
        summary = lock.run(engine.process)   # None if another run holds it
    """

    def __init__(self, store: LockStore, lock_key: int):
        self._store = store
        self.lock_key = int(lock_key)

    def acquire(self) -> bool:
        return bool(self._store.try_acquire_lock(self.lock_key))

    def release(self) -> None:
        self._store.release_lock(self.lock_key)

    def run(self, fn: Callable[[], T]) -> T | None:
        try:
            acquired = self.acquire()
        except Exception:
            logger.exception("acquiring job lock failed, skipping run", extra={"lock_key": self.lock_key})
            return None

        if not acquired:
            logger.debug("job lock held elsewhere, skipping run", extra={"lock_key": self.lock_key})
            return None

        try:
            return fn()
        finally:
            try:
                self.release()
            except Exception:
                logger.exception("releasing job lock failed", extra={"lock_key": self.lock_key})
