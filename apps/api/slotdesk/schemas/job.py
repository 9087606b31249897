"""Job API schemas."""

import datetime as dt
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class JobStatus(str, Enum):
    OPEN = "open"
    CLAIMED = "claimed"
    OFFERED = "offered"
    OFFERED_EXPIRED = "offered_expired"
    CONFIRMED_YES = "confirmed_yes"
    CONFIRMED_NO = "confirmed_no"
    COMPLETED = "completed"


class Offer(BaseModel):
    centre: str
    date: dt.date
    time: dt.time
    note: str = ""
    expires_at: dt.datetime

    @field_validator("expires_at")
    @classmethod
    def _assume_utc(cls, value: dt.datetime) -> dt.datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value


class Job(BaseModel):
    """A bookable test slot as stored by the job ledger."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("id", "booking_id", "job_id"))
    status: JobStatus
    centre_id: str = ""
    centre_name: str = ""
    candidate_name: str = ""
    candidate_phone: str = ""
    licence_number: str = ""
    desired_centres: list[str] = Field(default_factory=list)
    desired_date_from: dt.date | None = None
    desired_date_to: dt.date | None = None
    notes: str = ""
    assigned_to: str | None = None
    offer: Offer | None = None
    deleted: bool = False
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _lowercase_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("desired_centres", mode="before")
    @classmethod
    def _split_desired_centres(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("assigned_to", mode="before")
    @classmethod
    def _blank_assignee_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class JobActionResponse(BaseModel):
    ok: bool = True
    action: str
    job_id: str
    status: JobStatus | None = None
    job: Job | None = None


class BoardMeta(BaseModel):
    raw: int
    after_filter: int
    coverage: list[str]
    universal: bool = False


class BoardResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    jobs: list[Job]
    meta: BoardMeta = Field(alias="_meta")


class MineResponse(BaseModel):
    jobs: list[Job]
    payout_per_job: int
    total_due: int


class StatsResponse(BaseModel):
    completed_all_time: int


class JobListResponse(BaseModel):
    jobs: list[Job]
