"""In-memory collaborators used for local runs and tests."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
import hashlib
import json
import threading
from typing import Any, Callable
from uuid import uuid4

from slotdesk.adapters.documents.base import (
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreUnavailableError,
    VersionConflictError,
    VersionedDocument,
)
from slotdesk.adapters.ledger.base import JobLedger, LedgerRejectedError, LedgerUnavailableError
from slotdesk.domain.job_fsm import can_apply, effective_status, next_status
from slotdesk.schemas.job import Job, JobStatus, Offer

# Ledger action name -> lifecycle action it performs.
_LIFECYCLE_ACTIONS: dict[str, str] = {
    "claim": "claim",
    "release": "release",
    "complete": "complete",
    "propose_offer": "offer",
    "extend_offer": "extend",
    "record_client_reply": "mark-client-reply",
    "assign_to": "assign",
    "delete_soft": "delete",
    "log_event": "nudge",
}


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class LedgerEventRecord:
    action: str
    job_id: str
    payload: dict[str, Any]
    recorded_at: datetime


class InMemoryJobLedger(JobLedger):
    """Deterministic ledger that enforces the same lifecycle rules as the engine.

    ``failure_message`` fails the next write before it is applied.
    ``failure_after_apply_message`` applies the next write and then fails, the
    way a ledger call that timed out after landing looks to the caller.
    """

    def __init__(self, *, now: Callable[[], datetime] = _utc_now) -> None:
        self._now = now
        self._lock = threading.Lock()
        self.jobs: dict[str, Job] = {}
        self.events: list[LedgerEventRecord] = []
        self.read_count = 0
        self.write_count = 0
        self.available = True
        self.failure_message: str | None = None
        self.failure_after_apply_message: str | None = None

    def seed(self, *jobs: Job | dict[str, Any]) -> None:
        with self._lock:
            for item in jobs:
                job = item if isinstance(item, Job) else Job.model_validate(item)
                if job.created_at is None:
                    job = job.model_copy(update={"created_at": self._now()})
                self.jobs[job.id] = job.model_copy(deep=True)

    def list_jobs(
        self,
        *,
        status: str | None = None,
        assigned_to: str | None = None,
        q: str = "",
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Job]:
        with self._lock:
            self._ensure_available()
            self.read_count += 1
            needle = q.strip().lower()
            rows = []
            for job in self.jobs.values():
                if status is not None and job.status.value != status:
                    continue
                if assigned_to is not None and (job.assigned_to or "") != assigned_to:
                    continue
                if needle and needle not in self._search_text(job):
                    continue
                rows.append(job)

            rows.sort(key=lambda job: (job.created_at or datetime.min.replace(tzinfo=UTC), job.id))
            end = None if limit is None else offset + limit
            return [job.model_copy(deep=True) for job in rows[offset:end]]

    def get_job(self, job_id: str) -> Job | None:
        with self._lock:
            self._ensure_available()
            self.read_count += 1
            job = self.jobs.get(job_id)
            return job.model_copy(deep=True) if job is not None else None

    def apply(self, action: str, payload: dict[str, Any]) -> Job | None:
        with self._lock:
            self._ensure_available()
            if self.failure_message is not None:
                message = self.failure_message
                self.failure_message = None
                raise LedgerUnavailableError(message)

            if action == "create_booking":
                job = self._create(payload.get("booking") or {})
            else:
                job = self._mutate(action, payload)
            self.write_count += 1
            self.events.append(
                LedgerEventRecord(action=action, job_id=job.id, payload=copy.deepcopy(payload), recorded_at=self._now())
            )

            if self.failure_after_apply_message is not None:
                message = self.failure_after_apply_message
                self.failure_after_apply_message = None
                raise LedgerUnavailableError(message)
            return job.model_copy(deep=True)

    def ping(self) -> bool:
        return self.available

    def _ensure_available(self) -> None:
        if not self.available:
            raise LedgerUnavailableError("Ledger is unavailable")

    def _create(self, booking: dict[str, Any]) -> Job:
        now = self._now()
        job = Job.model_validate(
            {
                **booking,
                "id": f"job-{uuid4().hex[:10]}",
                "status": JobStatus.OPEN,
                "assigned_to": None,
                "created_at": now,
                "updated_at": now,
            }
        )
        self.jobs[job.id] = job
        return job

    def _mutate(self, action: str, payload: dict[str, Any]) -> Job:
        lifecycle_action = _LIFECYCLE_ACTIONS.get(action)
        if lifecycle_action is None:
            raise LedgerRejectedError(f"Unsupported action {action}", code="UNKNOWN_ACTION")

        job_id = str(payload.get("booking_id") or "")
        job = self.jobs.get(job_id)
        if job is None:
            raise LedgerRejectedError(f"Unknown booking {job_id}", code="NOT_FOUND")
        if job.deleted:
            raise LedgerRejectedError(f"Booking {job_id} is deleted", code="DELETED")

        now = self._now()
        current = effective_status(job, now)
        if not can_apply(lifecycle_action, current):
            raise LedgerRejectedError(f"Cannot {action} a booking in status {current.value}", code="INVALID_STATE")

        update: dict[str, Any] = {"updated_at": now}
        if action == "claim":
            update.update(status=JobStatus.CLAIMED, assigned_to=payload["token"])
        elif action == "release":
            update.update(status=JobStatus.OPEN, assigned_to=None, offer=None)
        elif action == "complete":
            update.update(status=JobStatus.COMPLETED)
        elif action == "propose_offer":
            update.update(status=JobStatus.OFFERED, offer=Offer.model_validate(payload["offer"]))
        elif action == "extend_offer":
            if job.offer is None:
                raise LedgerRejectedError(f"Booking {job_id} has no offer", code="INVALID_STATE")
            expires_at = payload.get("expires_at")
            if expires_at is None:
                new_expiry = job.offer.expires_at + timedelta(minutes=int(payload["minutes"]))
            else:
                new_expiry = Offer.model_validate({**job.offer.model_dump(), "expires_at": expires_at}).expires_at
            update.update(status=JobStatus.OFFERED, offer=job.offer.model_copy(update={"expires_at": new_expiry}))
        elif action == "record_client_reply":
            update.update(status=next_status(lifecycle_action, current, reply=payload["reply"]))
        elif action == "assign_to":
            update.update(status=JobStatus.CLAIMED, assigned_to=payload["to_token"])
        elif action == "delete_soft":
            update.update(deleted=True)

        mutated = job.model_copy(update=update, deep=True)
        self.jobs[job_id] = mutated
        return mutated

    @staticmethod
    def _search_text(job: Job) -> str:
        parts = [job.id, job.centre_name, job.centre_id, job.candidate_name, job.licence_number, job.notes]
        return " ".join(parts).lower()


def _content_version(revision: int, document: Any) -> str:
    canonical = json.dumps(document, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha1(canonical.encode("utf-8")).hexdigest()[:16]
    return f"{revision}-{digest}"


@dataclass(slots=True)
class DocumentWriteRecord:
    path: str
    message: str
    version: str


@dataclass(slots=True)
class InMemoryDocumentStore(DocumentStore):
    """Versioned JSON documents kept in process memory.

    ``write_failures`` maps a path to a message; the next write to that path
    fails once with ``DocumentStoreUnavailableError``.
    """

    documents: dict[str, VersionedDocument] = field(default_factory=dict)
    writes: list[DocumentWriteRecord] = field(default_factory=list)
    write_failures: dict[str, str] = field(default_factory=dict)
    unavailable_paths: set[str] = field(default_factory=set)
    write_count: int = 0
    _revision: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def seed(self, path: str, document: Any) -> str:
        with self._lock:
            return self._store(path, document)

    def read(self, path: str) -> VersionedDocument:
        with self._lock:
            if path in self.unavailable_paths:
                raise DocumentStoreUnavailableError(f"Document store unavailable for {path}")
            current = self.documents.get(path)
            if current is None:
                raise DocumentNotFoundError(path)
            return VersionedDocument(document=copy.deepcopy(current.document), version=current.version)

    def write(self, path: str, document: Any, *, expected_version: str | None, message: str) -> str:
        with self._lock:
            if path in self.unavailable_paths:
                raise DocumentStoreUnavailableError(f"Document store unavailable for {path}")
            failure = self.write_failures.pop(path, None)
            if failure is not None:
                raise DocumentStoreUnavailableError(failure)

            current = self.documents.get(path)
            current_version = current.version if current is not None else None
            if expected_version != current_version:
                raise VersionConflictError(path, expected_version=expected_version, current_version=current_version)

            version = self._store(path, document)
            self.write_count += 1
            self.writes.append(DocumentWriteRecord(path=path, message=message, version=version))
            return version

    def _store(self, path: str, document: Any) -> str:
        self._revision += 1
        version = _content_version(self._revision, document)
        self.documents[path] = VersionedDocument(document=copy.deepcopy(document), version=version)
        return version
