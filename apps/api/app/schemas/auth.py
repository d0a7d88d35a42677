"""Authentication schemas."""

from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.user import LeaderStatus, Role, User

TokenType = Literal["access", "refresh"]


class TokenClaims(BaseModel):
    """Signed point-in-time projection of a user's identity and authorization attributes."""

    sub: str = Field(min_length=1)
    email: str
    name: str = ""
    role: Role | None = None
    leader_status: LeaderStatus | None = None
    type: TokenType
    iat: int
    exp: int


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    expires_in: int


class TokenResponse(BaseModel):
    user: User
    access_token: str
    refresh_token: str
    token_type: Literal["bearer"] = "bearer"
    expires_in: int
    is_new_user: bool = False


class RefreshRequest(BaseModel):
    refresh_token: str | None = None


class OAuthProfile(BaseModel):
    """Normalized identity returned by an OAuth provider."""

    email: str = Field(min_length=3)
    name: str
    external_id: str = Field(min_length=1)
    picture: str | None = None
    email_verified: bool = False
