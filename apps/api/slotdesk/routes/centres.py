"""Centre list routes."""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends

from slotdesk.routes.dependencies import get_authenticated_principal, get_centres_service
from slotdesk.schemas.auth import AuthPrincipal
from slotdesk.schemas.centre import CentresMutationResponse, CentresResponse
from slotdesk.schemas.error import ErrorResponse, UpstreamError, VersionConflictError
from slotdesk.services.centres import CentresService

router = APIRouter(tags=["Centres"])


@router.get("/centres", response_model=CentresResponse, responses={502: {"model": UpstreamError}})
def list_centres(
    principal: Annotated[AuthPrincipal, Depends(get_authenticated_principal)],
    service: Annotated[CentresService, Depends(get_centres_service)],
) -> CentresResponse:
    return service.list_active()


@router.get(
    "/centres/bin",
    response_model=CentresResponse,
    responses={403: {"model": ErrorResponse}, 502: {"model": UpstreamError}},
)
def list_deleted_centres(
    principal: Annotated[AuthPrincipal, Depends(get_authenticated_principal)],
    service: Annotated[CentresService, Depends(get_centres_service)],
) -> CentresResponse:
    return service.list_deleted(principal)


@router.put(
    "/centres",
    response_model=CentresMutationResponse,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        409: {"model": VersionConflictError},
        502: {"model": UpstreamError},
    },
)
def update_centres(
    payload: Annotated[Any, Body()],
    principal: Annotated[AuthPrincipal, Depends(get_authenticated_principal)],
    service: Annotated[CentresService, Depends(get_centres_service)],
) -> CentresMutationResponse:
    return service.update(principal, payload)
