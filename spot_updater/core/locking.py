"""
Per-key mutual exclusion.

Synchronizing a collection is a read-decide-fetch-append sequence spread
over several database calls and network requests. Two overlapping
sequences for the same collection would both see the same cached size and
both append the same pages. KeyedLock hands out one re-entrant lock per
collection key so those sequences run one at a time, while different
playlists and users still proceed in parallel.

Usage:
    locks = KeyedLock()
    with locks.hold("playlist:37i9dQZF1DX"):
        ...
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class KeyedLock:
    """
    Registry of re-entrant locks, one per key.

    Locks are re-entrant so an operation already holding a playlist's lock
    (main-artist resolution) can call the synchronizer for the same
    playlist without deadlocking.

    Locks are never evicted; the number of keys is bounded by the number
    of users and playlists in the store.
    """

    def __init__(self) -> None:
        self._locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Block until the lock for `key` is acquired; release on exit."""
        lock = self._lock_for(key)
        with lock:
            yield

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)
