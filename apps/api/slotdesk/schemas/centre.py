"""Centre list schemas."""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter, model_validator

from slotdesk.domain.centres import normalize_centre_id

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class Centre(BaseModel):
    """One entry of the centre list document; unknown keys are kept on rewrite."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    deleted: bool = False

    @model_validator(mode="before")
    @classmethod
    def _derive_id(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            data["name"] = str(data.get("name") or "").strip()
            data["id"] = normalize_centre_id(data.get("id") or data["name"])
        return data


class CentresResponse(BaseModel):
    centres: list[Centre]
    sha: str | None = None


class CentreInput(BaseModel):
    id: str = ""
    name: NonEmptyStr


class AppendCentresRequest(BaseModel):
    mode: Literal["append"]
    sha: str | None
    centres: list[CentreInput] = Field(min_length=1)


class DeleteCentresRequest(BaseModel):
    mode: Literal["delete"]
    sha: str | None
    ids: list[NonEmptyStr] = Field(min_length=1)


class RestoreCentresRequest(BaseModel):
    mode: Literal["restore"]
    sha: str | None
    ids: list[NonEmptyStr] = Field(min_length=1)


CentresUpdateRequest = Annotated[
    Union[AppendCentresRequest, DeleteCentresRequest, RestoreCentresRequest],
    Field(discriminator="mode"),
]

_CENTRES_UPDATE_ADAPTER: TypeAdapter[CentresUpdateRequest] = TypeAdapter(CentresUpdateRequest)


def parse_centres_update(body: Any) -> CentresUpdateRequest:
    """Validate a raw PUT body; raises ``pydantic.ValidationError``."""
    return _CENTRES_UPDATE_ADAPTER.validate_python(body if isinstance(body, dict) else {})


class CentresMutationResponse(BaseModel):
    ok: bool = True
    mode: Literal["append", "delete", "restore"]
    sha: str
    count: int
    changed: list[str]
    removed_from_bookers: int = 0
