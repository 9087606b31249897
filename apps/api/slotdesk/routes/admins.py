"""Master-only administration routes."""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends

from slotdesk.routes.dependencies import get_admin_service, get_authenticated_principal
from slotdesk.schemas.admin import (
    AdminCodesMutationResponse,
    AdminCodesResponse,
    BookersResponse,
    ForceOnboardRequest,
)
from slotdesk.schemas.auth import AuthPrincipal
from slotdesk.schemas.error import ErrorResponse, UpstreamError, VersionConflictError
from slotdesk.schemas.profile import OkResponse
from slotdesk.services.admins import AdminService

router = APIRouter(tags=["Admins"])

Principal = Annotated[AuthPrincipal, Depends(get_authenticated_principal)]
Service = Annotated[AdminService, Depends(get_admin_service)]


@router.get("/admins/bookers", response_model=BookersResponse, responses={403: {"model": ErrorResponse}})
def list_bookers(principal: Principal, service: Service) -> BookersResponse:
    return service.bookers(principal)


@router.post(
    "/admins/force-onboard",
    response_model=OkResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 502: {"model": UpstreamError}},
)
def force_onboard(payload: ForceOnboardRequest, principal: Principal, service: Service) -> OkResponse:
    return service.force_onboard(principal, payload.token)


@router.get("/admin-codes", response_model=AdminCodesResponse, responses={403: {"model": ErrorResponse}})
def list_admin_codes(principal: Principal, service: Service) -> AdminCodesResponse:
    return service.codes(principal)


@router.put(
    "/admin-codes",
    response_model=AdminCodesMutationResponse,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": VersionConflictError},
        502: {"model": UpstreamError},
    },
)
def update_admin_codes(
    payload: Annotated[Any, Body()],
    principal: Principal,
    service: Service,
) -> AdminCodesMutationResponse:
    return service.update_codes(principal, payload)
