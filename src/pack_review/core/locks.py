"""Process-local keyed locks.

Database constraints and row locks are the source of truth for atomicity;
these locks serialise work inside one process so that SQLite (which has no
row locks) and tight race windows behave the same as PostgreSQL.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Hashable, Iterator
from contextlib import contextmanager
from threading import Lock, RLock


class KeyedLock:
    """Hand out one re-entrant thread lock per key."""

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: defaultdict[Hashable, RLock] = defaultdict(RLock)

    def _get(self, key: Hashable) -> RLock:
        with self._guard:
            return self._locks[key]

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Block until ``key`` is free and hold it for the ``with`` body."""
        lock = self._get(key)
        with lock:
            yield


class AsyncKeyedLock:
    """One ``asyncio.Lock`` per key, for coroutines sharing an event loop."""

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}

    def get(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock


# Shared registries: dedup is keyed by content hash, voting by contribution id.
content_hash_locks = KeyedLock()
contribution_locks = KeyedLock()
