"""Caller-scoped profile, coverage and onboarding routes."""

from typing import Annotated

from fastapi import APIRouter, Depends

from slotdesk.routes.dependencies import get_authenticated_principal, get_profile_service
from slotdesk.schemas.auth import AuthPrincipal, MeResponse
from slotdesk.schemas.error import ErrorResponse, UpstreamError, VersionConflictError
from slotdesk.schemas.profile import (
    MyCentresResponse,
    MyCentresUpdate,
    OnboardingComplete,
    OnboardingResponse,
    ProfileResponse,
    ProfileUpdate,
)
from slotdesk.services.profiles import ProfileService

router = APIRouter(tags=["Profile"])

Principal = Annotated[AuthPrincipal, Depends(get_authenticated_principal)]
Service = Annotated[ProfileService, Depends(get_profile_service)]

_WRITE_RESPONSES = {
    400: {"model": ErrorResponse},
    409: {"model": VersionConflictError},
    502: {"model": UpstreamError},
}


@router.get("/me", response_model=MeResponse)
def me(principal: Principal, service: Service) -> MeResponse:
    return service.me(principal)


@router.get("/my-centres", response_model=MyCentresResponse)
def my_centres(principal: Principal, service: Service) -> MyCentresResponse:
    return service.my_centres(principal)


@router.put("/my-centres", response_model=MyCentresResponse, responses=_WRITE_RESPONSES)
def set_my_centres(payload: MyCentresUpdate, principal: Principal, service: Service) -> MyCentresResponse:
    return service.set_my_centres(principal, payload.centres)


@router.get("/my-profile", response_model=ProfileResponse)
def my_profile(principal: Principal, service: Service) -> ProfileResponse:
    return service.profile(principal)


@router.put("/my-profile", response_model=ProfileResponse, responses=_WRITE_RESPONSES)
def update_my_profile(payload: ProfileUpdate, principal: Principal, service: Service) -> ProfileResponse:
    return service.update_profile(principal, payload)


@router.get("/my-onboarding", response_model=OnboardingResponse)
def my_onboarding(principal: Principal, service: Service) -> OnboardingResponse:
    return service.onboarding(principal)


@router.post("/my-onboarding/complete", response_model=OnboardingResponse, responses=_WRITE_RESPONSES)
def complete_onboarding(payload: OnboardingComplete, principal: Principal, service: Service) -> OnboardingResponse:
    return service.complete_onboarding(principal, payload)
