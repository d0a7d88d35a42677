"""API error response schemas."""

from typing import Any
from typing import Literal

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None


class UnauthorizedError(BaseModel):
    code: Literal["UNAUTHORIZED", "INVALID_CREDENTIALS"]
    message: str


class NoLeakNotFoundError(BaseModel):
    code: Literal["RESOURCE_NOT_FOUND"]
    message: str


class LeaderStatusErrorDetails(BaseModel):
    role: str | None
    attempted_status: str


class LeaderStatusNotApplicableError(BaseModel):
    code: Literal["LEADER_STATUS_NOT_APPLICABLE"]
    message: str
    details: LeaderStatusErrorDetails
