"""Job routes."""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Header, Path, Query
from fastapi.responses import JSONResponse

from slotdesk.routes.dependencies import get_authenticated_principal, get_job_service
from slotdesk.schemas.auth import AuthPrincipal
from slotdesk.schemas.error import (
    ErrorResponse,
    FsmTransitionError,
    IdempotentReplay,
    RateLimitedError,
    UpstreamError,
)
from slotdesk.schemas.job import (
    BoardResponse,
    JobActionResponse,
    JobListResponse,
    MineResponse,
    StatsResponse,
)
from slotdesk.services.jobs import PAGE_LIMIT_DEFAULT, JobService

router = APIRouter(tags=["Jobs"])

Principal = Annotated[AuthPrincipal, Depends(get_authenticated_principal)]
Service = Annotated[JobService, Depends(get_job_service)]
ActionBody = Annotated[Any, Body()]
IdempotencyKey = Annotated[str | None, Header(alias="X-Idempotency-Key")]

_ACTION_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": FsmTransitionError | IdempotentReplay},
    429: {"model": RateLimitedError},
    502: {"model": UpstreamError},
}


def _run(service: JobService, principal: AuthPrincipal, action: str, payload: Any, key: str | None) -> JSONResponse:
    result = service.execute(principal, action, payload, idempotency_key=key)
    return JSONResponse(status_code=result.status_code, content=result.body)


@router.get("/jobs/board", response_model=BoardResponse, response_model_by_alias=True)
def job_board(
    principal: Principal,
    service: Service,
    q: str = "",
    limit: Annotated[int, Query()] = PAGE_LIMIT_DEFAULT,
    offset: Annotated[int, Query()] = 0,
) -> BoardResponse:
    return service.board(principal, q=q, limit=limit, offset=offset)


@router.get("/jobs/mine", response_model=MineResponse)
def my_jobs(
    principal: Principal,
    service: Service,
    limit: Annotated[int, Query()] = PAGE_LIMIT_DEFAULT,
    offset: Annotated[int, Query()] = 0,
) -> MineResponse:
    return service.mine(principal, limit=limit, offset=offset)


@router.get("/jobs/stats", response_model=StatsResponse)
def my_stats(principal: Principal, service: Service) -> StatsResponse:
    return service.stats(principal)


@router.get(
    "/admins/bookers/{token}/jobs",
    response_model=JobListResponse,
    tags=["Admins"],
    responses={403: {"model": ErrorResponse}},
)
def booker_jobs(
    token: Annotated[str, Path(min_length=1)],
    principal: Principal,
    service: Service,
    limit: Annotated[int, Query()] = PAGE_LIMIT_DEFAULT,
    offset: Annotated[int, Query()] = 0,
) -> JobListResponse:
    return service.jobs_for_booker(principal, token=token, limit=limit, offset=offset)


@router.post("/jobs/claim", response_model=JobActionResponse, responses=_ACTION_RESPONSES)
def claim_job(principal: Principal, service: Service, payload: ActionBody = None, key: IdempotencyKey = None):
    return _run(service, principal, "claim", payload, key)


@router.post("/jobs/release", response_model=JobActionResponse, responses=_ACTION_RESPONSES)
def release_job(principal: Principal, service: Service, payload: ActionBody = None, key: IdempotencyKey = None):
    return _run(service, principal, "release", payload, key)


@router.post("/jobs/complete", response_model=JobActionResponse, responses=_ACTION_RESPONSES)
def complete_job(principal: Principal, service: Service, payload: ActionBody = None, key: IdempotencyKey = None):
    return _run(service, principal, "complete", payload, key)


@router.post("/jobs/offer", response_model=JobActionResponse, responses=_ACTION_RESPONSES)
def offer_job(principal: Principal, service: Service, payload: ActionBody = None, key: IdempotencyKey = None):
    return _run(service, principal, "offer", payload, key)


@router.post("/jobs/offer/nudge", response_model=JobActionResponse, responses=_ACTION_RESPONSES)
def nudge_offer(principal: Principal, service: Service, payload: ActionBody = None, key: IdempotencyKey = None):
    return _run(service, principal, "nudge", payload, key)


@router.post("/jobs/offer/extend", response_model=JobActionResponse, responses=_ACTION_RESPONSES)
def extend_offer(principal: Principal, service: Service, payload: ActionBody = None, key: IdempotencyKey = None):
    return _run(service, principal, "extend", payload, key)


@router.post("/jobs/mark-client-reply", response_model=JobActionResponse, responses=_ACTION_RESPONSES)
def mark_client_reply(principal: Principal, service: Service, payload: ActionBody = None, key: IdempotencyKey = None):
    return _run(service, principal, "mark-client-reply", payload, key)


@router.post("/jobs/assign", response_model=JobActionResponse, responses=_ACTION_RESPONSES)
def assign_job(principal: Principal, service: Service, payload: ActionBody = None, key: IdempotencyKey = None):
    return _run(service, principal, "assign", payload, key)


@router.post("/jobs/delete", response_model=JobActionResponse, responses=_ACTION_RESPONSES)
def delete_job(principal: Principal, service: Service, payload: ActionBody = None, key: IdempotencyKey = None):
    return _run(service, principal, "delete", payload, key)


@router.post("/jobs/create", response_model=JobActionResponse, responses=_ACTION_RESPONSES)
def create_job(principal: Principal, service: Service, payload: ActionBody = None, key: IdempotencyKey = None):
    return _run(service, principal, "create", payload, key)
