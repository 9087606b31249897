"""Coverage resolution: which centres an actor may see and act on."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import re
from typing import Any

from pydantic import ValidationError

from slotdesk.adapters.documents.base import DocumentNotFoundError, DocumentStore, DocumentStoreUnavailableError
from slotdesk.core.logging_safety import safe_log_identifier
from slotdesk.domain.centres import normalize_centre_ids
from slotdesk.errors import upstream_error
from slotdesk.schemas.auth import AuthPrincipal
from slotdesk.schemas.centre import Centre
from slotdesk.services.directory import AdminDirectory, parse_records

logger = logging.getLogger(__name__)

_SAFE_TOKEN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


@dataclass(frozen=True, slots=True)
class Coverage:
    centres: frozenset[str]
    universal: bool = False

    def covers(self, centre_id: str) -> bool:
        if self.universal:
            return True
        return bool(centre_id) and centre_id in self.centres

    def as_list(self) -> list[str]:
        return sorted(self.centres)


EMPTY_COVERAGE = Coverage(centres=frozenset())
UNIVERSAL_COVERAGE = Coverage(centres=frozenset(), universal=True)


class CoverageResolver:
    """Resolves coverage from the actor records, then per-actor files, then static records.

    A record whose coverage is configured is authoritative even when it is
    empty; later sources are only consulted when the record is missing,
    has no coverage configured, or its store is unavailable. Unconfigured
    coverage resolves to the empty set. Centres marked deleted in the centre
    list never count, whichever source named them.
    """

    def __init__(
        self,
        directory: AdminDirectory,
        store: DocumentStore,
        *,
        coverage_dir: str,
        static_records: dict[str, Any] | None = None,
        centres_path: str | None = None,
    ) -> None:
        self._directory = directory
        self._store = store
        self._coverage_dir = coverage_dir.rstrip("/")
        self._centres_path = centres_path
        self._static_records = parse_records(static_records or {})

    def resolve(self, principal: AuthPrincipal) -> Coverage:
        if principal.is_master:
            return UNIVERSAL_COVERAGE
        return self.resolve_token(principal.token)

    def resolve_token(self, token: str) -> Coverage:
        safe_actor_id = safe_log_identifier(token, prefix="aid")
        primary_failed = False
        try:
            record = self._directory.get(token)
        except DocumentStoreUnavailableError:
            logger.warning("coverage.primary_unavailable actor_id=%s", safe_actor_id)
            primary_failed = True
            record = None

        if record is not None:
            if record.is_master:
                return UNIVERSAL_COVERAGE
            if record.coverage is not None:
                return self._without_deleted(record.coverage)

        centres = self._read_actor_file(token)
        if centres is None:
            static = self._static_records.get(token)
            if static is not None and static.coverage is not None:
                centres = static.coverage

        if centres is None:
            if primary_failed:
                raise upstream_error("Coverage records are unavailable")
            logger.info("coverage.unconfigured actor_id=%s", safe_actor_id)
            return EMPTY_COVERAGE
        return self._without_deleted(centres)

    def _without_deleted(self, centres: list[str]) -> Coverage:
        if not centres:
            return EMPTY_COVERAGE
        deleted = self._deleted_centres()
        return Coverage(centres=frozenset(centre_id for centre_id in centres if centre_id not in deleted))

    def _deleted_centres(self) -> frozenset[str]:
        if self._centres_path is None:
            return frozenset()
        try:
            document = self._store.read(self._centres_path).document
        except DocumentNotFoundError:
            return frozenset()
        except DocumentStoreUnavailableError:
            logger.warning("coverage.centres_unavailable path=%s", self._centres_path)
            return frozenset()
        if not isinstance(document, list):
            return frozenset()
        deleted: set[str] = set()
        for raw in document:
            if not isinstance(raw, dict):
                continue
            try:
                centre = Centre.model_validate(raw)
            except ValidationError:
                continue
            if centre.deleted and centre.id:
                deleted.add(centre.id)
        return frozenset(deleted)

    def _read_actor_file(self, token: str) -> list[str] | None:
        if not _SAFE_TOKEN.match(token):
            return None
        path = f"{self._coverage_dir}/{token}.json"
        try:
            document = self._store.read(path).document
        except DocumentNotFoundError:
            return None
        except DocumentStoreUnavailableError:
            logger.warning("coverage.fallback_unavailable actor_id=%s", safe_log_identifier(token, prefix="aid"))
            return None
        if isinstance(document, dict) and isinstance(document.get("centres"), list):
            return normalize_centre_ids(document["centres"])
        return None


__all__ = ["Coverage", "CoverageResolver", "EMPTY_COVERAGE", "UNIVERSAL_COVERAGE"]
