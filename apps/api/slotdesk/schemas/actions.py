"""Job action request schemas.

Each mutating job endpoint accepts exactly one of these payloads. They form a
discriminated union on ``action`` so a raw request body can be validated
against the endpoint's schema only after the rate-limit and idempotency gates.
"""

import datetime as dt
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, StringConstraints, TypeAdapter, model_validator

JobId = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3)]


class ClaimAction(BaseModel):
    action: Literal["claim"]
    job_id: JobId


class ReleaseAction(BaseModel):
    action: Literal["release"]
    job_id: JobId


class CompleteAction(BaseModel):
    action: Literal["complete"]
    job_id: JobId


class OfferAction(BaseModel):
    action: Literal["offer"]
    job_id: JobId
    centre: Annotated[str, StringConstraints(strip_whitespace=True, min_length=2)]
    date: dt.date
    time: dt.time
    note: str = ""


class NudgeAction(BaseModel):
    action: Literal["nudge"]
    job_id: JobId


class ExtendAction(BaseModel):
    action: Literal["extend"]
    job_id: JobId
    minutes: int = Field(ge=1, le=240)


class ClientReplyAction(BaseModel):
    action: Literal["mark-client-reply"]
    job_id: JobId
    reply: Literal["YES", "NO"]


class AssignAction(BaseModel):
    action: Literal["assign"]
    job_id: JobId
    to_token: Annotated[str, StringConstraints(strip_whitespace=True, min_length=3)]


class DeleteAction(BaseModel):
    action: Literal["delete"]
    job_id: JobId


class CreateAction(BaseModel):
    action: Literal["create"]
    centre_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    centre_id: str = ""
    candidate_name: str = ""
    candidate_phone: str = ""
    licence_number: str = ""
    desired_centres: list[str] = Field(default_factory=list)
    desired_date_from: dt.date | None = None
    desired_date_to: dt.date | None = None
    notes: str = ""

    @model_validator(mode="after")
    def _date_range_ordered(self) -> "CreateAction":
        if self.desired_date_from and self.desired_date_to and self.desired_date_from > self.desired_date_to:
            raise ValueError("desired_date_from must not be after desired_date_to")
        return self


JobAction = Annotated[
    Union[
        ClaimAction,
        ReleaseAction,
        CompleteAction,
        OfferAction,
        NudgeAction,
        ExtendAction,
        ClientReplyAction,
        AssignAction,
        DeleteAction,
        CreateAction,
    ],
    Field(discriminator="action"),
]

_JOB_ACTION_ADAPTER: TypeAdapter[JobAction] = TypeAdapter(JobAction)


def parse_job_action(action: str, body: Any) -> JobAction:
    """Validate a raw request body as the payload of ``action``.

    Raises ``pydantic.ValidationError`` for malformed bodies.
    """
    payload = dict(body) if isinstance(body, dict) else {}
    payload["action"] = action
    return _JOB_ACTION_ADAPTER.validate_python(payload)
