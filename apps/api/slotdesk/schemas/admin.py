"""Master-only administration schemas."""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, StringConstraints, TypeAdapter

from slotdesk.schemas.auth import ActorRole

AdminCodeValue = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^[A-Za-z0-9_-]{1,64}$")]


class BookerSummary(BaseModel):
    token: str
    name: str
    role: ActorRole
    coverage: list[str]
    available: bool


class BookersResponse(BaseModel):
    bookers: list[BookerSummary]


class ForceOnboardRequest(BaseModel):
    token: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class AdminCode(BaseModel):
    name: str
    role: ActorRole
    onboarding_required: bool
    onboarded_at: str


class AdminCodesResponse(BaseModel):
    codes: dict[str, AdminCode]
    sha: str | None = None


class AppendAdminCodeRequest(BaseModel):
    mode: Literal["append"]
    sha: str | None
    code: AdminCodeValue
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    role: ActorRole = "booker"


class DeleteAdminCodeRequest(BaseModel):
    mode: Literal["delete"]
    sha: str | None
    code: AdminCodeValue


AdminCodesUpdateRequest = Annotated[
    Union[AppendAdminCodeRequest, DeleteAdminCodeRequest],
    Field(discriminator="mode"),
]

_ADMIN_CODES_UPDATE_ADAPTER: TypeAdapter[AdminCodesUpdateRequest] = TypeAdapter(AdminCodesUpdateRequest)


def parse_admin_codes_update(body: Any) -> AdminCodesUpdateRequest:
    return _ADMIN_CODES_UPDATE_ADAPTER.validate_python(body if isinstance(body, dict) else {})


class AdminCodesMutationResponse(BaseModel):
    ok: bool = True
    mode: Literal["append", "delete"]
    code: str
    sha: str
