"""Actor records kept in the versioned document store."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Callable, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from slotdesk.adapters.documents.base import DocumentNotFoundError, DocumentStore, VersionConflictError
from slotdesk.domain.centres import normalize_centre_ids
from slotdesk.schemas.auth import ActorRole

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Keys older records used before the current field names.
_LEGACY_FIELDS: dict[str, str] = {
    "centres": "coverage",
    "availability": "available",
    "maxDaily": "max_daily",
}


class ActorRecord(BaseModel):
    """One actor as stored under its bearer token.

    ``coverage is None`` means coverage was never configured for the actor,
    which is different from an explicitly empty list.
    """

    model_config = ConfigDict(extra="allow")

    name: str = "Admin"
    role: ActorRole = "booker"
    coverage: list[str] | None = None
    available: bool = True
    notes: str = ""
    max_daily: int = 0
    onboarding_required: bool = False
    onboarded_at: str = ""

    @model_validator(mode="before")
    @classmethod
    def _merge_legacy_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        merged = dict(data)
        for legacy, current in _LEGACY_FIELDS.items():
            if legacy not in merged:
                continue
            value = merged.pop(legacy)
            if legacy == "centres" and isinstance(merged.get("coverage"), list):
                merged["coverage"] = [*merged["coverage"], *(value if isinstance(value, list) else [])]
            else:
                merged.setdefault(current, value)
        return merged

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().lower() == "master":
            return "master"
        return "booker"

    @field_validator("coverage", mode="before")
    @classmethod
    def _normalize_coverage(cls, value: Any) -> Any:
        if value is None:
            return None
        return normalize_centre_ids(value)

    @property
    def is_master(self) -> bool:
        return self.role == "master"


@dataclass(slots=True)
class DirectorySnapshot:
    records: dict[str, ActorRecord]
    version: str | None


@dataclass(frozen=True, slots=True)
class DirectoryWrite:
    before_version: str | None
    after_version: str


def parse_records(document: Any) -> dict[str, ActorRecord]:
    """Parse a records document; malformed entries are skipped, never fatal."""
    if not isinstance(document, dict):
        return {}
    records: dict[str, ActorRecord] = {}
    for token, raw in document.items():
        try:
            records[str(token)] = ActorRecord.model_validate(raw if isinstance(raw, dict) else {})
        except ValidationError:
            logger.warning("directory.record_skipped reason=invalid_record")
    return records


def dump_records(records: dict[str, ActorRecord]) -> dict[str, Any]:
    return {token: record.model_dump(mode="json", exclude_none=True) for token, record in records.items()}


class AdminDirectory:
    """Reads and writes the actor records document.

    When the document does not exist yet, the static records from settings
    are served and the first write creates the document from them.
    """

    def __init__(self, store: DocumentStore, *, path: str, static_records: dict[str, Any] | None = None) -> None:
        self._store = store
        self._path = path
        self._static_document = static_records or {}

    @property
    def path(self) -> str:
        return self._path

    def load(self) -> DirectorySnapshot:
        try:
            current = self._store.read(self._path)
        except DocumentNotFoundError:
            return DirectorySnapshot(records=parse_records(self._static_document), version=None)
        return DirectorySnapshot(records=parse_records(current.document), version=current.version)

    def get(self, token: str) -> ActorRecord | None:
        return self.load().records.get(token)

    def write(self, records: dict[str, ActorRecord], *, expected_version: str | None, message: str) -> str:
        return self._store.write(self._path, dump_records(records), expected_version=expected_version, message=message)

    def update(
        self,
        mutate: Callable[[dict[str, ActorRecord]], T],
        *,
        message: str,
        attempts: int = 3,
    ) -> tuple[T, DirectoryWrite]:
        """Re-read, re-apply ``mutate`` and write until the write is not stale.

        Only for mutations that are safe to re-apply on top of a newer
        document, such as an actor editing its own record.
        """
        attempt = 1
        while True:
            snapshot = self.load()
            result = mutate(snapshot.records)
            try:
                version = self.write(snapshot.records, expected_version=snapshot.version, message=message)
            except VersionConflictError:
                logger.info("directory.write_conflict attempt=%s path=%s", attempt, self._path)
                if attempt >= attempts:
                    raise
                attempt += 1
                continue
            return result, DirectoryWrite(before_version=snapshot.version, after_version=version)


__all__ = ["ActorRecord", "AdminDirectory", "DirectorySnapshot", "DirectoryWrite", "dump_records", "parse_records"]
