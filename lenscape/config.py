"""
Runtime settings for the Lenscape API.

Values come from the process environment first and the project ``.env``
second. Credentials (JWT key, storage keys, M-Pesa and Google secrets) are
not modelled here; they are read on demand through ``security.secrets``.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[1]
ENV_PATH = BASE_DIR / ".env"

# Platform-provided variables win over .env entries
load_dotenv(dotenv_path=ENV_PATH, override=False)


class Settings(BaseSettings):
    database_url: str = Field(..., alias="DATABASE_URL")

    app_name: str = Field(default="Lenscape Backend", alias="APP_NAME")
    api_version: str = Field(default="0.1.0", alias="API_VERSION")
    public_base_url: str = Field(default="http://localhost:8000", alias="PUBLIC_BASE_URL")
    cors_origins: str | None = Field(default=None, alias="CORS_ORIGINS")

    # Tokens
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_expires_minutes: int = Field(default=1440, alias="JWT_EXPIRES_MINUTES")

    # Paging
    feed_page_size: int = Field(default=10, alias="FEED_PAGE_SIZE")
    explore_page_size: int = Field(default=20, alias="EXPLORE_PAGE_SIZE")

    # Marketplace / M-Pesa
    default_image_price: int = Field(default=100, alias="DEFAULT_IMAGE_PRICE")
    mpesa_base_url: str | None = Field(default=None, alias="MPESA_BASE_URL")
    mpesa_shortcode: str | None = Field(default=None, alias="MPESA_SHORTCODE")
    mpesa_callback_url: str | None = Field(default=None, alias="MPESA_CALLBACK_URL")
    mpesa_timeout: float = Field(default=30.0, alias="MPESA_TIMEOUT")

    # Google OAuth; the redirect defaults to PUBLIC_BASE_URL + /auth/oauth/google/callback
    google_client_id: str | None = Field(default=None, alias="GOOGLE_CLIENT_ID")
    google_redirect_uri: str | None = Field(default=None, alias="GOOGLE_REDIRECT_URI")
    oauth_timeout: float = Field(default=15.0, alias="OAUTH_TIMEOUT")

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
