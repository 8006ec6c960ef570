"""Run-wide advisory lock.

Two runners started at the same time (two app instances booting, or an
operator re-triggering a slow run) must not interleave against one
store. ``RunLock`` takes the store's lock for the whole run, waiting up
to ``wait_seconds`` for a competing holder to finish. The runner
refreshes it before each migration.

The lock is cooperative: it only excludes other runners that use it.
TTL expiry guarantees that a crashed holder does not block forever.

Example::

    with RunLock(store, owner="web-1", ttl_seconds=300, wait_seconds=30):
        ...  # exclusive against other runners on this store
"""

from __future__ import annotations

import time
from collections.abc import Callable
from types import TracebackType

from schemaspine.core.errors import MigrationLockError
from schemaspine.core.logging import get_logger
from schemaspine.core.protocols import LockingStore

logger = get_logger(__name__)


class RunLock:
    """Context manager holding a ``LockingStore`` lock for one run."""

    def __init__(
        self,
        store: LockingStore,
        owner: str,
        *,
        ttl_seconds: int = 300,
        wait_seconds: float = 30.0,
        poll_interval: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.owner = owner
        self.ttl_seconds = ttl_seconds
        self.wait_seconds = wait_seconds
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep
        self.held = False

    def acquire(self) -> None:
        """Take the lock, polling until ``wait_seconds`` elapse.

        Raises:
            MigrationLockError: Another owner still holds the lock.
        """
        deadline = self._clock() + self.wait_seconds
        waited = False
        while True:
            if self.store.acquire_lock(self.owner, self.ttl_seconds):
                self.held = True
                logger.info("migration.lock_acquired", owner=self.owner, waited=waited)
                return

            holder = self.store.lock_holder()
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise MigrationLockError(
                    f"Migration lock held by {holder or 'another runner'}; "
                    f"gave up after {self.wait_seconds:g}s",
                    holder=holder,
                ).with_context(store=self.store.backend)

            if not waited:
                logger.info("migration.lock_wait", owner=self.owner, holder=holder, wait_seconds=self.wait_seconds)
                waited = True
            self._sleep(min(self.poll_interval, remaining))

    def refresh(self) -> None:
        """Push the lock's expiry out by another ``ttl_seconds``.

        Called between migrations so a long run keeps the lock past its
        original TTL.

        Raises:
            MigrationLockError: The lock expired and another owner took it.
        """
        if self.store.acquire_lock(self.owner, self.ttl_seconds):
            return
        holder = self.store.lock_holder()
        if holder == self.owner:
            # Lock table busy; the row is still ours
            return
        self.held = False
        logger.warning("migration.lock_lost", owner=self.owner, holder=holder)
        raise MigrationLockError(
            f"Migration lock lost to {holder or 'another runner'} mid-run",
            holder=holder,
        ).with_context(store=self.store.backend)

    def release(self) -> None:
        if not self.held:
            return
        self.held = False
        try:
            released = self.store.release_lock(self.owner)
        except Exception as e:
            # Expires on its own after ttl_seconds
            logger.error("migration.lock_release_failed", owner=self.owner, error=str(e))
            return
        if released:
            logger.info("migration.lock_released", owner=self.owner)
        else:
            # TTL ran out mid-run and someone else took over
            logger.warning("migration.lock_lost", owner=self.owner)

    def __enter__(self) -> RunLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


def supports_locking(store: object) -> bool:
    return all(callable(getattr(store, name, None)) for name in ("acquire_lock", "release_lock", "lock_holder"))


__all__ = ["RunLock", "supports_locking"]
