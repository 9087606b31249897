"""Short-TTL read-through cache in front of the job ledger."""

from __future__ import annotations

from dataclasses import dataclass
import threading
import time
from typing import Any, Callable, Hashable, TypeVar

T = TypeVar("T")

# Keys are (namespace, actor or None, *query shape).
CacheKey = tuple[Hashable, ...]


@dataclass(slots=True)
class _CacheEntry:
    value: Any
    stored_at: float


class JobCache:
    """Caches ledger reads per full query shape.

    Every invalidation bumps a generation counter; a value computed while an
    invalidation happened is returned to its caller but never stored, so a
    response can not be served from data read before a mutation.
    """

    def __init__(self, *, ttl_seconds: float, monotonic: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._monotonic = monotonic
        self._entries: dict[CacheKey, _CacheEntry] = {}
        self._generation = 0
        self._lock = threading.Lock()

    def get_or_compute(self, key: CacheKey, compute: Callable[[], T]) -> T:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._monotonic() - entry.stored_at < self._ttl:
                return entry.value
            generation = self._generation

        value = compute()

        with self._lock:
            if self._ttl > 0 and generation == self._generation:
                self._entries[key] = _CacheEntry(value=value, stored_at=self._monotonic())
        return value

    def invalidate(self, namespace: str, actor: str | None = None) -> int:
        """Drop entries of ``namespace``; limited to ``actor`` when given."""
        with self._lock:
            self._generation += 1
            doomed = [
                key
                for key in self._entries
                if key[0] == namespace and (actor is None or (len(key) > 1 and key[1] == actor))
            ]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def prune(self) -> int:
        """Drop entries older than the TTL; return how many were dropped."""
        with self._lock:
            now = self._monotonic()
            expired = [key for key, entry in self._entries.items() if now - entry.stored_at >= self._ttl]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def invalidate_all(self) -> None:
        with self._lock:
            self._generation += 1
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["CacheKey", "JobCache"]
