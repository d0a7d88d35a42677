"""Application configuration."""

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    credential_store: Literal["memory", "firebase"] = "firebase"
    jwt_secret: str = Field(min_length=1)
    jwt_algorithm: Literal["HS256", "HS384", "HS512"] = "HS256"
    access_token_ttl: timedelta = timedelta(minutes=15)
    refresh_token_ttl: timedelta = timedelta(days=7)

    firebase_service_account_key: str | None = None
    firebase_web_api_key: str | None = None

    google_client_id: str | None = None
    google_client_secret: str | None = None
    google_callback_url: str = "http://localhost:3001/api/v1/auth/google/callback"
    frontend_url: str = "http://localhost:5173"

    cookie_secure: bool = False
    http_timeout_seconds: float = 10.0

    model_config = SettingsConfigDict(env_prefix="VIBE_APPLY_", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
