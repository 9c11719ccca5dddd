"""Thread-safe TTL cache for snapshot fetch results."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Any


@dataclass(frozen=True, slots=True)
class CacheEntry:
    payload: Any
    fetched_at: float


class SnapshotCache:
    """In-memory cache of REST payloads keyed by resource name.

    Writers: SnapshotFetcher after a successful, non-empty fetch.
    Readers: SnapshotFetcher before hitting the network.

    Entries older than ``ttl`` seconds are never returned. Empty payloads are
    refused so a transient outage can't poison the cache.
    """

    def __init__(self, ttl: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = Lock()

    def get(self, key: str) -> Any | None:
        """Return the cached payload, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.fetched_at >= self._ttl:
                del self._entries[key]
                return None
            return entry.payload

    def set(self, key: str, payload: Any) -> bool:
        """Store a payload. Returns False (and stores nothing) if it is empty."""
        if not payload:
            return False
        with self._lock:
            self._entries[key] = CacheEntry(payload=payload, fetched_at=self._clock())
        return True

    def invalidate(self, key: str | None = None) -> None:
        """Drop one entry, or everything when ``key`` is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    @property
    def ttl(self) -> float:
        return self._ttl

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
