"""
Lock management for record writes.

Writes to one record are serialised with a per-key lock so that concurrent
saves can never interleave their tmp/bak/rename steps. Locks are in-process
only; the store runs in a single process.
"""

import threading
from contextlib import contextmanager


class LockTimeout(Exception):
    """Lock acquisition timed out."""
    pass


class KeyLocks:
    """Registry of re-entrant locks, one per key.

    Re-entrant so that a thread already holding a key (e.g. an event handler
    or a self-healing write triggered inside a save) can take it again.
    A key's lock is dropped once no thread holds or waits for it, so the
    registry only tracks keys in use.
    """

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout
        self._locks: dict[str, threading.RLock] = {}
        self._users: dict[str, int] = {}  # holders plus waiters per key
        self._guard = threading.Lock()

    def _checkout(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            self._users[key] = self._users.get(key, 0) + 1
            return lock

    def _checkin(self, key: str) -> None:
        with self._guard:
            remaining = self._users[key] - 1
            if remaining:
                self._users[key] = remaining
            else:
                del self._users[key]
                del self._locks[key]

    @contextmanager
    def hold(self, key: str, timeout: float | None = None):
        """
        Acquire the lock for key, yield, release on exit.

        Raises:
            LockTimeout: If the lock is not acquired within timeout seconds
        """
        timeout = self.timeout if timeout is None else timeout
        lock = self._checkout(key)
        try:
            if not lock.acquire(timeout=timeout):
                raise LockTimeout(f"Could not acquire write lock for {key} within {timeout}s")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)

    def __len__(self) -> int:
        """Number of keys currently held or waited on."""
        with self._guard:
            return len(self._locks)
