"""Append-only audit trail for state-changing actions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import UTC, datetime
import logging
from typing import Any, Callable

from slotdesk.adapters.documents.base import DocumentNotFoundError, DocumentStore, VersionConflictError
from slotdesk.core.logging_safety import safe_log_identifier
from slotdesk.schemas.auth import AuthPrincipal

logger = logging.getLogger(__name__)

_APPEND_ATTEMPTS = 3


def _utc_now() -> datetime:
    return datetime.now(UTC)


class AuditLog(ABC):
    @abstractmethod
    def record(
        self,
        *,
        actor: AuthPrincipal,
        action: str,
        target: str,
        before_version: str | None = None,
        after_version: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Append one record. Never raises."""


class DocumentAuditLog(AuditLog):
    """Keeps the trail as a JSON array document in the versioned store."""

    def __init__(self, store: DocumentStore, *, path: str, now: Callable[[], datetime] = _utc_now) -> None:
        self._store = store
        self._path = path
        self._now = now

    def record(
        self,
        *,
        actor: AuthPrincipal,
        action: str,
        target: str,
        before_version: str | None = None,
        after_version: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        entry = {
            "timestamp": self._now().isoformat(),
            "actor": actor.name,
            "actor_id": safe_log_identifier(actor.token, prefix="aid"),
            "role": actor.role,
            "action": action,
            "target": target,
            "before_version": before_version,
            "after_version": after_version,
            "details": details or {},
        }
        try:
            self._append(entry)
        except Exception as exc:  # audit failures never fail the audited operation
            logger.warning(
                "audit.write_failed action=%s target=%s reason=%s",
                action,
                target,
                type(exc).__name__,
            )

    def _append(self, entry: dict[str, Any]) -> None:
        for attempt in range(1, _APPEND_ATTEMPTS + 1):
            try:
                current = self._store.read(self._path)
                entries = current.document if isinstance(current.document, list) else []
                version: str | None = current.version
            except DocumentNotFoundError:
                entries, version = [], None

            try:
                self._store.write(
                    self._path,
                    [*entries, entry],
                    expected_version=version,
                    message=f"audit: {entry['action']}",
                )
                return
            except VersionConflictError:
                logger.info("audit.write_conflict attempt=%s", attempt)

        logger.warning("audit.write_abandoned action=%s attempts=%s", entry["action"], _APPEND_ATTEMPTS)


__all__ = ["AuditLog", "DocumentAuditLog"]
