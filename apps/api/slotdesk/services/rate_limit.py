"""Per-actor fixed-window rate limiting."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import math
import threading
import time
from typing import Callable


@dataclass(frozen=True, slots=True)
class RateDecision:
    allowed: bool
    retry_after_seconds: int = 0


class RateLimiter(ABC):
    """Gate for mutating calls. State may be process-local; losing it fails open."""

    @abstractmethod
    def check(self, actor_key: str) -> RateDecision:
        """Count one call for ``actor_key`` and say whether it may proceed."""

    @abstractmethod
    def sweep(self) -> int:
        """Drop buckets whose window has ended; return how many were dropped."""


@dataclass(slots=True)
class _Bucket:
    window_started: float
    count: int = 0


class InMemoryRateLimiter(RateLimiter):
    def __init__(self, *, limit: int, window_seconds: float, monotonic: Callable[[], float] = time.monotonic) -> None:
        self._limit = limit
        self._window = window_seconds
        self._monotonic = monotonic
        self._buckets: dict[str, _Bucket] = {}
        self._lock = threading.Lock()

    def check(self, actor_key: str) -> RateDecision:
        now = self._monotonic()
        with self._lock:
            bucket = self._buckets.get(actor_key)
            if bucket is None or now - bucket.window_started >= self._window:
                bucket = _Bucket(window_started=now)
                self._buckets[actor_key] = bucket

            if bucket.count >= self._limit:
                remaining = bucket.window_started + self._window - now
                return RateDecision(allowed=False, retry_after_seconds=max(1, math.ceil(remaining)))

            bucket.count += 1
            return RateDecision(allowed=True)

    def sweep(self) -> int:
        now = self._monotonic()
        with self._lock:
            expired = [key for key, bucket in self._buckets.items() if now - bucket.window_started >= self._window]
            for key in expired:
                del self._buckets[key]
            return len(expired)


__all__ = ["InMemoryRateLimiter", "RateDecision", "RateLimiter"]
