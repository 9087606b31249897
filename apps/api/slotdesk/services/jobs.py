"""Job service layer: board reads and the guarded job action pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import Any, Callable
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from slotdesk.adapters.documents.base import DocumentStoreUnavailableError
from slotdesk.adapters.ledger.base import JobLedger, LedgerRejectedError, LedgerUnavailableError
from slotdesk.adapters.notify import NotificationError, Notifier
from slotdesk.core.config import Settings
from slotdesk.core.logging_safety import fingerprint_payload, safe_log_identifier
from slotdesk.domain.centres import job_centre_id, normalize_centre_id, normalize_centre_ids
from slotdesk.domain.job_fsm import ExpectedOutcome, effective_status, ensure_action_allowed, next_status, present
from slotdesk.errors import ApiError, invalid_fields, rate_limited_error, upstream_error, validation_failed
from slotdesk.schemas.actions import (
    AssignAction,
    ClientReplyAction,
    CreateAction,
    ExtendAction,
    JobAction,
    OfferAction,
    parse_job_action,
)
from slotdesk.schemas.auth import AuthPrincipal
from slotdesk.schemas.error import IdempotentReplay
from slotdesk.schemas.job import (
    BoardMeta,
    BoardResponse,
    Job,
    JobActionResponse,
    JobListResponse,
    JobStatus,
    MineResponse,
    StatsResponse,
)
from slotdesk.services.audit import AuditLog
from slotdesk.services.coverage import CoverageResolver
from slotdesk.services.directory import AdminDirectory
from slotdesk.services.idempotency import IdempotencyScope, IdempotencyStore
from slotdesk.services.job_cache import JobCache
from slotdesk.services.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

PAGE_LIMIT_DEFAULT = 50
PAGE_LIMIT_MAX = 200

_LEDGER_ACTIONS: dict[str, str] = {
    "claim": "claim",
    "release": "release",
    "complete": "complete",
    "offer": "propose_offer",
    "nudge": "log_event",
    "extend": "extend_offer",
    "mark-client-reply": "record_client_reply",
    "assign": "assign_to",
    "delete": "delete_soft",
    "create": "create_booking",
}

_MASTER_ACTIONS = frozenset({"assign", "delete", "create"})
_ASSIGNEE_ACTIONS = frozenset({"complete", "offer", "nudge", "extend", "mark-client-reply"})
# Low-frequency admin actions drop every cached view.
_COARSE_INVALIDATION_ACTIONS = frozenset({"assign", "delete", "create"})
_NOTIFY_EVENTS: dict[str, str] = {"offer": "offer.proposed", "nudge": "offer.nudged"}


def clamp_paging(limit: int | None, offset: int | None) -> tuple[int, int]:
    """Apply the default page size and the hard cap."""
    size = PAGE_LIMIT_DEFAULT if limit is None else max(1, min(int(limit), PAGE_LIMIT_MAX))
    return size, max(0, int(offset or 0))


@dataclass(frozen=True, slots=True)
class ActionResult:
    status_code: int
    body: dict[str, Any]


@dataclass(frozen=True, slots=True)
class _PreparedWrite:
    payload: dict[str, Any]
    expected: ExpectedOutcome | None
    audit_details: dict[str, Any]


class JobService:
    def __init__(
        self,
        *,
        ledger: JobLedger,
        cache: JobCache,
        coverage: CoverageResolver,
        directory: AdminDirectory,
        claim_limiter: RateLimiter,
        action_limiter: RateLimiter,
        idempotency: IdempotencyStore,
        audit: AuditLog,
        notifier: Notifier,
        settings: Settings,
        now: Callable[[], datetime],
    ) -> None:
        self._ledger = ledger
        self._cache = cache
        self._coverage = coverage
        self._directory = directory
        self._claim_limiter = claim_limiter
        self._action_limiter = action_limiter
        self._idempotency = idempotency
        self._audit = audit
        self._notifier = notifier
        self._settings = settings
        self._now = now

    # Reads

    def board(
        self,
        principal: AuthPrincipal,
        *,
        q: str = "",
        limit: int | None = None,
        offset: int = 0,
    ) -> BoardResponse:
        coverage = self._coverage.resolve(principal)
        limit, offset = clamp_paging(limit, offset)
        query = q.strip()
        raw = self._cache.get_or_compute(
            ("board", None, query, limit, offset),
            lambda: self._list_jobs(status=JobStatus.OPEN.value, assigned_to="", q=query, limit=limit, offset=offset),
        )

        now = self._now()
        jobs = [
            present(job, now)
            for job in raw
            if not job.deleted
            and effective_status(job, now) is JobStatus.OPEN
            and coverage.covers(job_centre_id(job))
        ]
        logger.info(
            "jobs.board actor_id=%s raw=%s visible=%s universal=%s",
            safe_log_identifier(principal.token, prefix="aid"),
            len(raw),
            len(jobs),
            coverage.universal,
        )
        return BoardResponse(
            jobs=jobs,
            meta=BoardMeta(
                raw=len(raw),
                after_filter=len(jobs),
                coverage=coverage.as_list(),
                universal=coverage.universal,
            ),
        )

    def mine(self, principal: AuthPrincipal, *, limit: int | None = None, offset: int = 0) -> MineResponse:
        limit, offset = clamp_paging(limit, offset)
        raw = self._cache.get_or_compute(
            ("mine", principal.token, limit, offset),
            lambda: self._list_jobs(assigned_to=principal.token, limit=limit, offset=offset),
        )
        now = self._now()
        jobs = [present(job, now) for job in raw if not job.deleted]
        completed = sum(1 for job in jobs if job.status is JobStatus.COMPLETED)
        payout = self._settings.payout_per_job
        return MineResponse(jobs=jobs, payout_per_job=payout, total_due=completed * payout)

    def stats(self, principal: AuthPrincipal) -> StatsResponse:
        raw = self._cache.get_or_compute(
            ("stats", principal.token),
            lambda: self._list_jobs(status=JobStatus.COMPLETED.value, assigned_to=principal.token),
        )
        return StatsResponse(completed_all_time=sum(1 for job in raw if not job.deleted))

    def jobs_for_booker(
        self,
        principal: AuthPrincipal,
        *,
        token: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> JobListResponse:
        self._require_master(principal, "view another booker's jobs")
        limit, offset = clamp_paging(limit, offset)
        raw = self._list_jobs(assigned_to=token, limit=limit, offset=offset)
        now = self._now()
        return JobListResponse(jobs=[present(job, now) for job in raw if not job.deleted])

    # Writes

    def execute(
        self,
        principal: AuthPrincipal,
        action: str,
        body: Any,
        *,
        idempotency_key: str | None = None,
    ) -> ActionResult:
        """Run one job action through the rate, idempotency, validation and precondition gates."""
        safe_actor_id = safe_log_identifier(principal.token, prefix="aid")
        limiter = self._claim_limiter if action == "claim" else self._action_limiter
        decision = limiter.check(principal.token)
        if not decision.allowed:
            logger.info(
                "job.rate_limited actor_id=%s action=%s retry_after=%s",
                safe_actor_id,
                action,
                decision.retry_after_seconds,
            )
            raise rate_limited_error(decision.retry_after_seconds)

        scope: IdempotencyScope | None = None
        fingerprint = fingerprint_payload(body)
        key = (idempotency_key or "").strip()
        if key:
            scope = (principal.token, action, key)
            replay = self._check_idempotency(scope, fingerprint, action=action, safe_actor_id=safe_actor_id)
            if replay is not None:
                return replay

        command = self._parse(action, body)
        self._validate_business_rules(command)

        job: Job | None = None
        if not isinstance(command, CreateAction):
            job = self._load_job(command.job_id)
            ensure_action_allowed(action, effective_status(job, self._now()), job_id=job.id)

        self._authorize(principal, command, job)
        prepared = self._prepare(principal, command, job)

        if scope is not None and not self._idempotency.begin(
            scope, fingerprint=fingerprint, expected=prepared.expected
        ):
            # Another request took the key after our first check; it may already have finished.
            replay = self._check_idempotency(scope, fingerprint, action=action, safe_actor_id=safe_actor_id)
            if replay is not None:
                return replay
            raise ApiError(
                status_code=409,
                code="IDEMPOTENCY_IN_PROGRESS",
                message="A request with this idempotency key is still running; retry shortly.",
            )

        try:
            applied = self._ledger.apply(_LEDGER_ACTIONS[action], prepared.payload)
        except LedgerUnavailableError as exc:
            if scope is not None:
                self._idempotency.fail(scope)
            self._bust(action, principal, job)
            logger.warning(
                "job.ledger_unavailable actor_id=%s action=%s reason=%s",
                safe_actor_id,
                action,
                type(exc).__name__,
            )
            raise upstream_error("Job ledger did not confirm the change; retry with the same idempotency key.") from exc
        except LedgerRejectedError as exc:
            if scope is not None:
                self._idempotency.discard(scope)
            self._bust(action, principal, job)
            logger.info("job.ledger_rejected actor_id=%s action=%s code=%s", safe_actor_id, action, exc.code)
            raise ApiError(
                status_code=409,
                code="LEDGER_REJECTED",
                message=str(exc) or "The job ledger rejected the change; reload and retry.",
                details={"ledger_code": exc.code} if exc.code else None,
            ) from exc

        self._bust(action, principal, job)
        try:
            result_job = self._resolve_result(command, job, applied)
        except ApiError:
            if scope is not None:
                self._idempotency.fail(scope)
            raise
        response = JobActionResponse(
            action=action,
            job_id=result_job.id,
            status=result_job.status,
            job=result_job,
        ).model_dump(mode="json", exclude_none=True)

        self._audit.record(
            actor=principal,
            action=f"job.{action}",
            target=f"job:{result_job.id}",
            details={
                "job_id": result_job.id,
                "before_status": job.status.value if job is not None else None,
                "after_status": result_job.status.value,
                **prepared.audit_details,
            },
        )
        if action in _NOTIFY_EVENTS:
            self._notify(_NOTIFY_EVENTS[action], result_job)
        if scope is not None:
            self._idempotency.complete(scope, response)

        logger.info(
            "job.%s.applied actor_id=%s job_id=%s status=%s",
            action,
            safe_actor_id,
            safe_log_identifier(result_job.id, prefix="jid"),
            result_job.status.value,
        )
        return ActionResult(status_code=200, body=response)

    def _check_idempotency(
        self,
        scope: IdempotencyScope,
        fingerprint: str,
        *,
        action: str,
        safe_actor_id: str,
    ) -> ActionResult | None:
        entry = self._idempotency.get(scope)
        if entry is None:
            return None
        if entry.fingerprint != fingerprint:
            raise ApiError(
                status_code=409,
                code="IDEMPOTENCY_KEY_REUSED",
                message="Idempotency key was already used with a different request body.",
                details={"action": action},
            )
        if entry.response is not None:
            logger.info("job.replayed actor_id=%s action=%s", safe_actor_id, action)
            return self._replay(entry.response)
        if entry.in_flight:
            raise ApiError(
                status_code=409,
                code="IDEMPOTENCY_IN_PROGRESS",
                message="A request with this idempotency key is still running; retry shortly.",
            )
        if entry.expected is None:
            return None

        # An earlier attempt failed upstream; it may still have landed.
        job = self._ledger_get(entry.expected.job_id)
        if job is None or not entry.expected.landed(job):
            return None

        now = self._now()
        shown = present(job, now)
        response = JobActionResponse(action=action, job_id=shown.id, status=shown.status, job=shown).model_dump(
            mode="json", exclude_none=True
        )
        self._idempotency.complete(scope, response)
        logger.info("job.replayed_landed actor_id=%s action=%s", safe_actor_id, action)
        return self._replay(response)

    @staticmethod
    def _replay(response: dict[str, Any]) -> ActionResult:
        return ActionResult(status_code=409, body=IdempotentReplay(response=response).model_dump(mode="json"))

    @staticmethod
    def _parse(action: str, body: Any) -> JobAction:
        try:
            return parse_job_action(action, body)
        except ValidationError as exc:
            raise validation_failed(invalid_fields(exc, tag=action)) from exc

    def _validate_business_rules(self, command: JobAction) -> None:
        if isinstance(command, OfferAction):
            slot = self._slot_datetime(command)
            if slot <= self._now():
                raise ApiError(
                    status_code=400,
                    code="INVALID_DATETIME",
                    message="Offer date and time must be in the future.",
                    details={"date": command.date.isoformat(), "time": command.time.isoformat(timespec="minutes")},
                )

    def _slot_datetime(self, command: OfferAction) -> datetime:
        zone = ZoneInfo(self._settings.timezone)
        return datetime.combine(command.date, command.time, tzinfo=zone)

    def _load_job(self, job_id: str) -> Job:
        job = self._ledger_get(job_id)
        if job is None:
            raise self._job_not_found(job_id)
        if job.deleted:
            raise ApiError(
                status_code=409,
                code="JOB_DELETED",
                message="Job has been deleted",
                details={"job_id": job_id},
            )
        return job

    def _authorize(self, principal: AuthPrincipal, command: JobAction, job: Job | None) -> None:
        action = command.action
        if action in _MASTER_ACTIONS:
            self._require_master(principal, action)
            if isinstance(command, AssignAction) and job is not None:
                self._check_assign_target(command.to_token, job)
            return

        if job is None:
            raise self._job_not_found(command.job_id)
        assigned_to_caller = job.assigned_to == principal.token
        if action == "claim":
            centre_id = job_centre_id(job)
            if not self._coverage.resolve(principal).covers(centre_id):
                raise ApiError(
                    status_code=403,
                    code="COVERAGE_MISMATCH",
                    message="This job's centre is outside your coverage.",
                    details={"job_id": job.id, "centre_id": centre_id},
                )
        elif action == "release":
            if not (assigned_to_caller or principal.is_master):
                raise self._not_assignee(job)
        elif action in _ASSIGNEE_ACTIONS and not assigned_to_caller:
            raise self._not_assignee(job)

    def _check_assign_target(self, to_token: str, job: Job) -> None:
        try:
            target = self._directory.get(to_token)
        except DocumentStoreUnavailableError as exc:
            raise upstream_error("Actor records are unavailable") from exc
        if target is None:
            raise ApiError(status_code=404, code="BOOKER_NOT_FOUND", message="Target booker not found")

        centre_id = job_centre_id(job)
        if not self._coverage.resolve_token(to_token).covers(centre_id):
            raise ApiError(
                status_code=403,
                code="COVERAGE_MISMATCH",
                message="Target booker does not cover this job's centre.",
                details={"job_id": job.id, "centre_id": centre_id},
            )

    @staticmethod
    def _require_master(principal: AuthPrincipal, action: str) -> None:
        if not principal.is_master:
            raise ApiError(status_code=403, code="MASTER_REQUIRED", message=f"Only a master may {action}.")

    @staticmethod
    def _job_not_found(job_id: str) -> ApiError:
        return ApiError(status_code=404, code="JOB_NOT_FOUND", message="Job not found", details={"job_id": job_id})

    @staticmethod
    def _not_assignee(job: Job) -> ApiError:
        return ApiError(
            status_code=403,
            code="NOT_ASSIGNEE",
            message="Only the assigned booker can do this.",
            details={"job_id": job.id},
        )

    def _prepare(self, principal: AuthPrincipal, command: JobAction, job: Job | None) -> _PreparedWrite:
        actor = {"token": principal.token, "actor": principal.name}
        if isinstance(command, CreateAction):
            booking = command.model_dump(mode="json", exclude={"action"})
            booking["centre_id"] = normalize_centre_id(command.centre_id or command.centre_name)
            booking["desired_centres"] = normalize_centre_ids(command.desired_centres)
            return _PreparedWrite(
                payload={"booking": booking, "actor": principal.name},
                expected=None,
                audit_details={"centre_id": booking["centre_id"]},
            )

        if job is None:
            raise self._job_not_found(command.job_id)
        payload: dict[str, Any] = {"booking_id": job.id, **actor}
        action = command.action
        current = effective_status(job, self._now())
        target_status = next_status(action, current)

        if isinstance(command, OfferAction):
            slot = self._slot_datetime(command)
            now = self._now()
            expires_at = min(now + timedelta(minutes=self._settings.offer_ttl_minutes), slot)
            offer = {
                "centre": command.centre,
                "date": command.date.isoformat(),
                "time": command.time.isoformat(timespec="minutes"),
                "note": command.note,
                "expires_at": expires_at.isoformat(),
            }
            payload["offer"] = offer
            return _PreparedWrite(
                payload=payload,
                expected=ExpectedOutcome(
                    job_id=job.id,
                    status=JobStatus.OFFERED,
                    offer_slot=(offer["centre"], offer["date"], offer["time"]),
                ),
                audit_details={"offer": offer},
            )

        if isinstance(command, ExtendAction):
            base = job.offer.expires_at if job.offer is not None else self._now()
            expires_at = base + timedelta(minutes=command.minutes)
            payload.update(minutes=command.minutes, expires_at=expires_at.isoformat())
            return _PreparedWrite(
                payload=payload,
                expected=ExpectedOutcome(job_id=job.id, min_expires_at=expires_at),
                audit_details={"minutes": command.minutes, "expires_at": expires_at.isoformat()},
            )

        if isinstance(command, ClientReplyAction):
            payload["reply"] = command.reply
            target = next_status(action, current, reply=command.reply)
            return _PreparedWrite(
                payload=payload,
                expected=ExpectedOutcome(job_id=job.id, status=target),
                audit_details={"reply": command.reply},
            )

        if isinstance(command, AssignAction):
            payload = {"booking_id": job.id, "to_token": command.to_token, "actor": principal.name}
            return _PreparedWrite(
                payload=payload,
                expected=ExpectedOutcome(
                    job_id=job.id,
                    status=JobStatus.CLAIMED,
                    check_assignee=True,
                    assigned_to=command.to_token,
                ),
                audit_details={"to_actor_id": safe_log_identifier(command.to_token, prefix="aid")},
            )

        if action == "delete":
            return _PreparedWrite(
                payload={"booking_id": job.id, "actor": principal.name},
                expected=ExpectedOutcome(job_id=job.id, deleted=True),
                audit_details={},
            )

        if action == "nudge":
            payload["event"] = "nudge"
            return _PreparedWrite(payload=payload, expected=None, audit_details={})

        # claim, release, complete
        expected = ExpectedOutcome(job_id=job.id, status=target_status)
        if action == "claim":
            expected = ExpectedOutcome(
                job_id=job.id, status=target_status, check_assignee=True, assigned_to=principal.token
            )
        elif action == "release":
            expected = ExpectedOutcome(job_id=job.id, status=target_status, check_assignee=True, assigned_to=None)
        details = {"previous_actor_id": safe_log_identifier(job.assigned_to, prefix="aid")} if job.assigned_to else {}
        return _PreparedWrite(payload=payload, expected=expected, audit_details=details)

    def _resolve_result(self, command: JobAction, job: Job | None, applied: Job | None) -> Job:
        """Job as it stands after the write, presented with its effective status."""
        result = applied
        if result is None and job is not None:
            try:
                result = self._ledger.get_job(job.id)
            except LedgerUnavailableError:
                logger.warning("job.result_reread_failed job_id=%s", safe_log_identifier(job.id, prefix="jid"))
        if result is None and job is not None:
            # Ledger confirmed without echoing the row; report the transition we asked for.
            reply = command.reply if isinstance(command, ClientReplyAction) else None
            status = next_status(command.action, effective_status(job, self._now()), reply=reply)
            result = job.model_copy(update={"status": status})
        if result is None:
            raise upstream_error("Job ledger did not return the created job.")
        return present(result, self._now())

    def _bust(self, action: str, principal: AuthPrincipal, job: Job | None) -> None:
        if action in _COARSE_INVALIDATION_ACTIONS:
            self._cache.invalidate_all()
            return
        self._cache.invalidate("board")
        affected = {principal.token}
        if job is not None and job.assigned_to:
            affected.add(job.assigned_to)
        for token in affected:
            self._cache.invalidate("mine", token)
            self._cache.invalidate("stats", token)

    def _notify(self, event: str, job: Job) -> None:
        payload: dict[str, Any] = {
            "job_id": job.id,
            "candidate_name": job.candidate_name,
            "candidate_phone": job.candidate_phone,
        }
        if job.offer is not None:
            payload["offer"] = job.offer.model_dump(mode="json")
        try:
            self._notifier.notify(event, payload)
        except NotificationError as exc:
            logger.warning(
                "job.notify_failed event=%s job_id=%s reason=%s",
                event,
                safe_log_identifier(job.id, prefix="jid"),
                type(exc.__cause__ or exc).__name__,
            )

    def _list_jobs(self, **filters: Any) -> list[Job]:
        try:
            return self._ledger.list_jobs(**filters)
        except (LedgerUnavailableError, LedgerRejectedError) as exc:
            logger.warning("jobs.list_failed reason=%s", type(exc).__name__)
            raise upstream_error("Job ledger is unavailable; try again shortly.") from exc

    def _ledger_get(self, job_id: str) -> Job | None:
        try:
            return self._ledger.get_job(job_id)
        except (LedgerUnavailableError, LedgerRejectedError) as exc:
            logger.warning(
                "jobs.get_failed job_id=%s reason=%s",
                safe_log_identifier(job_id, prefix="jid"),
                type(exc).__name__,
            )
            raise upstream_error("Job ledger is unavailable; try again shortly.") from exc


__all__ = ["ActionResult", "JobService", "PAGE_LIMIT_DEFAULT", "PAGE_LIMIT_MAX", "clamp_paging"]
