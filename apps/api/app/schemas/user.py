"""User API schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, EmailStr, Field


class Role(str, Enum):
    ADMIN = "admin"
    SESSION_LEADER = "session_leader"
    STAKE_PRESIDENT = "stake_president"
    BISHOP = "bishop"
    APPLICANT = "applicant"


class LeaderStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"


LEADER_ROLES: frozenset[Role] = frozenset({Role.SESSION_LEADER, Role.STAKE_PRESIDENT, Role.BISHOP})


def is_leader_role(role: Role | None) -> bool:
    return role in LEADER_ROLES


class User(BaseModel):
    """Public user projection. Credential material is never part of this model."""

    id: str
    name: str
    email: str
    role: Role | None = None
    leader_status: LeaderStatus | None = None
    created_at: datetime
    picture: str | None = None


class UpdateRoleRequest(BaseModel):
    role: Role
    approved: bool = False


class UpdateLeaderStatusRequest(BaseModel):
    leader_status: LeaderStatus


class CompleteProfileRequest(BaseModel):
    role: Role


class SignUpRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6)
    role: Role | None = None


class SignInRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class MessageResponse(BaseModel):
    message: str
