"""Authentication schemas."""

from typing import Literal

from pydantic import BaseModel, Field

ActorRole = Literal["master", "booker"]


class AuthPrincipal(BaseModel):
    """Normalized authenticated actor used by business services."""

    token: str = Field(min_length=1, repr=False)
    name: str = Field(default="Admin", min_length=1)
    role: ActorRole = "booker"

    @property
    def is_master(self) -> bool:
        return self.role == "master"


class MeResponse(BaseModel):
    name: str
    role: ActorRole
