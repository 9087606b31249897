"""API error response schemas."""

from typing import Any
from typing import Literal

from pydantic import BaseModel

from slotdesk.schemas.job import JobStatus


class ErrorResponse(BaseModel):
    error: str
    code: str
    message: str
    details: dict[str, Any] | None = None


class TransitionErrorDetails(BaseModel):
    job_id: str
    current_status: JobStatus
    attempted_action: str
    allowed_actions: list[str]


class FsmTransitionError(BaseModel):
    error: Literal["conflict"]
    code: Literal["FSM_TRANSITION_INVALID", "FSM_TERMINAL_IMMUTABLE", "JOB_DELETED", "LEDGER_REJECTED"]
    message: str
    details: TransitionErrorDetails | dict[str, Any] | None = None


class VersionConflictErrorDetails(BaseModel):
    path: str
    expected_version: str | None = None
    current_version: str | None = None
    action: Literal["reload"] = "reload"


class VersionConflictError(BaseModel):
    error: Literal["conflict"]
    code: Literal["VERSION_CONFLICT"]
    message: str
    details: VersionConflictErrorDetails


class RateLimitedErrorDetails(BaseModel):
    retry_after: int


class RateLimitedError(BaseModel):
    error: Literal["rate_limited"]
    code: Literal["RATE_LIMIT_EXCEEDED"]
    message: str
    details: RateLimitedErrorDetails


class UpstreamError(BaseModel):
    error: Literal["upstream_failed"]
    code: Literal["UPSTREAM_ERROR", "CASCADE_INCOMPLETE"]
    message: str
    details: dict[str, Any] | None = None


class IdempotentReplay(BaseModel):
    """409 body for a replayed write; carries the original response verbatim and no error code."""

    ok: bool = True
    replay: Literal[True] = True
    response: dict[str, Any]
