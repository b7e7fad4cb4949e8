"""Google OAuth 2.0 code exchange and userinfo lookup."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx

from ..config import get_settings
from ..security.secrets import MissingSecretError, require_secret

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


class OAuthConfigurationError(RuntimeError):
    """Raised when the Google client settings are missing."""


class OAuthError(RuntimeError):
    """Raised when Google rejects the exchange or returns an unusable profile."""


@dataclass(frozen=True)
class GoogleConfig:
    client_id: str
    client_secret: str
    redirect_uri: str
    timeout: float


@dataclass(frozen=True)
class GoogleProfile:
    email: str
    name: str | None
    picture: str | None
    email_verified: bool


def load_google_config() -> GoogleConfig:
    settings = get_settings()
    if not settings.google_client_id:
        raise OAuthConfigurationError("GOOGLE_CLIENT_ID must be configured")
    try:
        secret = require_secret("GOOGLE_CLIENT_SECRET")
    except MissingSecretError as exc:
        raise OAuthConfigurationError(str(exc)) from exc
    return GoogleConfig(
        client_id=settings.google_client_id,
        client_secret=secret,
        redirect_uri=settings.google_redirect_uri
        or f"{settings.public_base_url.rstrip('/')}/auth/oauth/google/callback",
        timeout=float(settings.oauth_timeout),
    )


def build_authorize_url(config: GoogleConfig, state: str) -> str:
    query = urlencode(
        {
            "client_id": config.client_id,
            "redirect_uri": config.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "state": state,
            "access_type": "online",
            "prompt": "select_account",
        }
    )
    return f"{AUTHORIZE_URL}?{query}"


async def fetch_profile(config: GoogleConfig, code: str) -> GoogleProfile:
    """Exchange ``code`` for a token and return the signed-in Google profile."""

    try:
        async with httpx.AsyncClient(timeout=config.timeout) as client:
            token_response = await client.post(
                TOKEN_URL,
                data={
                    "code": code,
                    "client_id": config.client_id,
                    "client_secret": config.client_secret,
                    "redirect_uri": config.redirect_uri,
                    "grant_type": "authorization_code",
                },
            )
            token_response.raise_for_status()
            access_token = token_response.json().get("access_token")
            if not access_token:
                raise OAuthError("Google did not return an access token")
            info_response = await client.get(USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"})
            info_response.raise_for_status()
            info = info_response.json()
    except httpx.HTTPStatusError as exc:
        logger.warning("Google OAuth returned %s", exc.response.status_code)
        raise OAuthError("Google sign-in was rejected") from exc
    except httpx.HTTPError as exc:
        logger.exception("Google OAuth request failed")
        raise OAuthError("Unable to reach Google") from exc

    email = (info.get("email") or "").strip().lower()
    if not email:
        raise OAuthError("Google profile has no email address")
    return GoogleProfile(
        email=email,
        name=info.get("name"),
        picture=info.get("picture"),
        email_verified=bool(info.get("email_verified")),
    )


__all__ = [
    "GoogleConfig",
    "GoogleProfile",
    "OAuthConfigurationError",
    "OAuthError",
    "load_google_config",
    "build_authorize_url",
    "fetch_profile",
]
