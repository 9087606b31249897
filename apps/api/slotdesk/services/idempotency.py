"""Short-lived idempotency entries for replay-safe job actions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import threading
import time
from typing import Any, Callable

from slotdesk.domain.job_fsm import ExpectedOutcome

# (actor token, action, client key)
IdempotencyScope = tuple[str, str, str]


@dataclass(slots=True)
class IdempotencyEntry:
    """State kept for one idempotency key.

    ``response`` is set once the call succeeded. Until then the entry is
    pending: ``in_flight`` while a request is executing it, otherwise the
    last attempt failed upstream and ``expected`` describes what the job
    looks like if that attempt landed anyway.
    """

    fingerprint: str
    created_at: float
    response: dict[str, Any] | None = None
    expected: ExpectedOutcome | None = None
    in_flight: bool = False


class IdempotencyStore(ABC):
    @abstractmethod
    def get(self, scope: IdempotencyScope) -> IdempotencyEntry | None:
        """Return the live entry for ``scope``."""

    @abstractmethod
    def begin(self, scope: IdempotencyScope, *, fingerprint: str, expected: ExpectedOutcome | None) -> bool:
        """Mark ``scope`` in flight. Returns ``False`` if another request already holds it."""

    @abstractmethod
    def complete(self, scope: IdempotencyScope, response: dict[str, Any]) -> None:
        """Store the successful response for replay."""

    @abstractmethod
    def fail(self, scope: IdempotencyScope) -> None:
        """Release the in-flight mark after an upstream failure whose outcome is unknown."""

    @abstractmethod
    def discard(self, scope: IdempotencyScope) -> None:
        """Forget ``scope``; used for calls that definitely did not mutate anything."""

    @abstractmethod
    def sweep(self) -> int:
        """Drop expired entries; return how many were dropped."""


class InMemoryIdempotencyStore(IdempotencyStore):
    def __init__(self, *, ttl_seconds: float, monotonic: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._monotonic = monotonic
        self._entries: dict[IdempotencyScope, IdempotencyEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, scope: IdempotencyScope) -> IdempotencyEntry | None:
        with self._lock:
            return self._live(scope)

    def begin(self, scope: IdempotencyScope, *, fingerprint: str, expected: ExpectedOutcome | None) -> bool:
        with self._lock:
            entry = self._live(scope)
            if entry is not None and (entry.in_flight or entry.response is not None):
                return False
            self._entries[scope] = IdempotencyEntry(
                fingerprint=fingerprint,
                created_at=self._monotonic(),
                expected=expected,
                in_flight=True,
            )
            return True

    def complete(self, scope: IdempotencyScope, response: dict[str, Any]) -> None:
        with self._lock:
            entry = self._entries.get(scope)
            if entry is None:
                return
            entry.response = response
            entry.in_flight = False

    def fail(self, scope: IdempotencyScope) -> None:
        with self._lock:
            entry = self._entries.get(scope)
            if entry is not None:
                entry.in_flight = False

    def discard(self, scope: IdempotencyScope) -> None:
        with self._lock:
            self._entries.pop(scope, None)

    def sweep(self) -> int:
        now = self._monotonic()
        with self._lock:
            expired = [scope for scope, entry in self._entries.items() if now - entry.created_at >= self._ttl]
            for scope in expired:
                del self._entries[scope]
            return len(expired)

    def _live(self, scope: IdempotencyScope) -> IdempotencyEntry | None:
        entry = self._entries.get(scope)
        if entry is None:
            return None
        if self._monotonic() - entry.created_at >= self._ttl:
            del self._entries[scope]
            return None
        return entry


__all__ = ["IdempotencyEntry", "IdempotencyScope", "IdempotencyStore", "InMemoryIdempotencyStore"]
