"""Actor-scoped profile, coverage and onboarding schemas."""

from typing import Annotated

from pydantic import AliasChoices, BaseModel, Field, StringConstraints

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class OkResponse(BaseModel):
    ok: bool = True


class MyCentresResponse(BaseModel):
    centres: list[str]


class MyCentresUpdate(BaseModel):
    centres: list[NonEmptyStr]


class ProfileResponse(BaseModel):
    notes: str
    max_daily: int
    available: bool


class ProfileUpdate(BaseModel):
    notes: str | None = None
    max_daily: int | None = Field(default=None, ge=0, validation_alias=AliasChoices("max_daily", "maxDaily"))
    available: bool | None = None


class OnboardingResponse(BaseModel):
    onboarding_required: bool
    name: str
    coverage: list[str]
    available: bool


class OnboardingComplete(BaseModel):
    name: NonEmptyStr
    coverage: list[NonEmptyStr] = Field(min_length=1)
    available: bool = Field(default=True, validation_alias=AliasChoices("available", "availability"))
