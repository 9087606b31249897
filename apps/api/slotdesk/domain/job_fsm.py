"""Job lifecycle transition rules."""

from dataclasses import dataclass
from datetime import datetime

from slotdesk.errors import ApiError
from slotdesk.schemas.job import Job, JobStatus, Offer

_TERMINAL_STATES: set[JobStatus] = {JobStatus.COMPLETED}

_OFFER_STATES: frozenset[JobStatus] = frozenset({JobStatus.OFFERED, JobStatus.OFFERED_EXPIRED})

_ACTION_PRECONDITIONS: dict[str, frozenset[JobStatus]] = {
    "claim": frozenset({JobStatus.OPEN}),
    "release": frozenset(
        {
            JobStatus.CLAIMED,
            JobStatus.OFFERED,
            JobStatus.OFFERED_EXPIRED,
            JobStatus.CONFIRMED_YES,
            JobStatus.CONFIRMED_NO,
        }
    ),
    "complete": frozenset({JobStatus.CLAIMED, JobStatus.CONFIRMED_YES}),
    "offer": frozenset({JobStatus.CLAIMED, JobStatus.OFFERED_EXPIRED}),
    "nudge": _OFFER_STATES,
    "extend": _OFFER_STATES,
    "mark-client-reply": _OFFER_STATES,
    "assign": frozenset({JobStatus.OPEN}),
    "delete": frozenset(status for status in JobStatus if status not in _TERMINAL_STATES),
}

# Actions missing here leave the stored status untouched.
_ACTION_TARGETS: dict[str, JobStatus] = {
    "claim": JobStatus.CLAIMED,
    "release": JobStatus.OPEN,
    "complete": JobStatus.COMPLETED,
    "offer": JobStatus.OFFERED,
    "assign": JobStatus.CLAIMED,
}

_REPLY_TARGETS: dict[str, JobStatus] = {
    "YES": JobStatus.CONFIRMED_YES,
    "NO": JobStatus.CONFIRMED_NO,
}


def is_expired(offer: Offer | None, now: datetime) -> bool:
    """An offer is expired once its expiry instant is no longer in the future."""
    return offer is not None and offer.expires_at <= now


def effective_status(job: Job, now: datetime) -> JobStatus:
    """Status as readers and preconditions must see it; expiry is derived, never stored."""
    if job.status is JobStatus.OFFERED and is_expired(job.offer, now):
        return JobStatus.OFFERED_EXPIRED
    return job.status


def present(job: Job, now: datetime) -> Job:
    """Copy of ``job`` carrying its effective status."""
    status = effective_status(job, now)
    if status is job.status:
        return job.model_copy(deep=True)
    return job.model_copy(update={"status": status}, deep=True)


def allowed_actions(status: JobStatus) -> list[str]:
    """Return deterministically ordered actions whose precondition ``status`` satisfies."""
    return sorted(action for action, statuses in _ACTION_PRECONDITIONS.items() if status in statuses)


def can_apply(action: str, status: JobStatus) -> bool:
    return status in _ACTION_PRECONDITIONS.get(action, frozenset())


def next_status(action: str, current: JobStatus, *, reply: str | None = None) -> JobStatus:
    if action == "mark-client-reply" and reply is not None:
        return _REPLY_TARGETS[reply]
    return _ACTION_TARGETS.get(action, current)


def ensure_action_allowed(action: str, status: JobStatus, *, job_id: str) -> None:
    """Validate an action against the job's effective status."""
    if status in _TERMINAL_STATES:
        raise ApiError(
            status_code=409,
            code="FSM_TERMINAL_IMMUTABLE",
            message="Completed jobs cannot be changed",
            details={
                "job_id": job_id,
                "current_status": status,
                "attempted_action": action,
                "allowed_actions": [],
            },
        )

    if not can_apply(action, status):
        raise ApiError(
            status_code=409,
            code="FSM_TRANSITION_INVALID",
            message=f"Cannot {action} a job in status {status.value}",
            details={
                "job_id": job_id,
                "current_status": status,
                "attempted_action": action,
                "allowed_actions": allowed_actions(status),
            },
        )


@dataclass(frozen=True, slots=True)
class ExpectedOutcome:
    """State a job must show if a previously attempted action actually landed.

    Used to recognise retries of writes whose ledger call timed out after the
    ledger had already applied them.
    """

    job_id: str
    status: JobStatus | None = None
    check_assignee: bool = False
    assigned_to: str | None = None
    deleted: bool | None = None
    min_expires_at: datetime | None = None
    offer_slot: tuple[str, str, str] | None = None

    def landed(self, job: Job) -> bool:
        if job.id != self.job_id:
            return False
        if self.status is not None and job.status is not self.status:
            return False
        if self.check_assignee and job.assigned_to != self.assigned_to:
            return False
        if self.deleted is not None and job.deleted is not self.deleted:
            return False
        if self.min_expires_at is not None:
            if job.offer is None or job.offer.expires_at < self.min_expires_at:
                return False
        if self.offer_slot is not None:
            if job.offer is None:
                return False
            slot = (job.offer.centre, job.offer.date.isoformat(), job.offer.time.isoformat(timespec="minutes"))
            if slot != self.offer_slot:
                return False
        return True
