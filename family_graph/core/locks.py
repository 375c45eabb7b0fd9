import threading
from contextlib import contextmanager
from typing import Iterator, Optional


class MemberLockRegistry:
    """
    Per-member re-entrant locks.

    A relationship operation touches up to two records (more for soft delete),
    so callers lock every id involved at once. Ids are always acquired in
    sorted order, which keeps two operations sharing a member from deadlocking.
    Locks are re-entrant so a store write can call into the synchronizer
    while already holding the same ids.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def _lock_for(self, member_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(member_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[member_id] = lock
            return lock

    @contextmanager
    def hold(self, *member_ids: Optional[str]) -> Iterator[None]:
        ids = sorted({mid for mid in member_ids if mid})
        acquired: list[threading.RLock] = []
        try:
            for mid in ids:
                lock = self._lock_for(mid)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def forget(self, member_id: str) -> None:
        """Drop the lock of a purged member. Safe to call while nobody holds it."""
        with self._guard:
            self._locks.pop(member_id, None)


member_locks = MemberLockRegistry()
