"""Sign-in with Google on top of the local account table."""
from __future__ import annotations

import logging
import re
import secrets
from typing import Tuple

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..clients import google_oauth
from ..constants import ROLE_CLIENT
from ..models import User
from .auth_service import create_access_token, decode_token_claims, sign_claims

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("google",)
STATE_TTL_MINUTES = 10


def _require_provider(provider: str) -> str:
    normalized = (provider or "").strip().lower()
    if normalized not in SUPPORTED_PROVIDERS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unsupported sign-in provider")
    return normalized


def _load_config() -> google_oauth.GoogleConfig:
    try:
        return google_oauth.load_google_config()
    except google_oauth.OAuthConfigurationError as exc:
        logger.error("OAuth requested but not configured: %s", exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Google sign-in is not available") from exc


def sign_state(provider: str, redirect_to: str | None) -> str:
    claims = {
        "purpose": "oauth_state",
        "provider": provider,
        "redirect_to": redirect_to or "/",
        "nonce": secrets.token_urlsafe(16),
    }
    return sign_claims(claims, expires_minutes=STATE_TTL_MINUTES)


def verify_state(state: str) -> dict:
    try:
        claims = decode_token_claims(state)
    except HTTPException as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Sign-in session expired, please retry") from exc
    if claims.get("purpose") != "oauth_state":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid sign-in state")
    return claims


def authorize_url(provider: str, redirect_to: str | None = None) -> Tuple[str, str]:
    """Return the provider consent URL and the signed state it carries."""

    normalized = _require_provider(provider)
    config = _load_config()
    state = sign_state(normalized, redirect_to)
    return google_oauth.build_authorize_url(config, state), state


def _unique_username(db: Session, email: str) -> str:
    base = re.sub(r"[^a-zA-Z0-9_]", "_", email.split("@", 1)[0])[:24].strip("_") or "user"
    if len(base) < 3:
        base = f"{base}_user"
    candidate = base
    while db.scalar(select(User.id).where(func.lower(User.username) == candidate.lower()).limit(1)) is not None:
        candidate = f"{base}_{secrets.token_hex(2)}"
    return candidate


async def complete_sign_in(db: Session, *, provider: str, code: str, state: str) -> Tuple[User, str, str]:
    """Exchange the provider code and return the local user, a token and the redirect target."""

    normalized = _require_provider(provider)
    claims = verify_state(state)
    if claims.get("provider") != normalized:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid sign-in state")

    config = _load_config()
    try:
        profile = await google_oauth.fetch_profile(config, code)
    except google_oauth.OAuthError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    user = db.scalar(select(User).where(User.email == profile.email))
    if user is None:
        name = (profile.name or "").strip() or profile.email.split("@", 1)[0]
        user = User(
            username=_unique_username(db, profile.email),
            email=profile.email,
            full_name=name,
            display_name=name[:50],
            avatar_url=profile.picture,
            oauth_provider=normalized,
            user_type=ROLE_CLIENT,
        )
        db.add(user)
    elif not user.oauth_provider:
        user.oauth_provider = normalized

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to persist OAuth user")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Unable to complete sign-in") from exc
    db.refresh(user)

    logger.info("User %s signed in with %s", user.id, normalized)
    return user, create_access_token(user.id), str(claims.get("redirect_to") or "/")


__all__ = ["SUPPORTED_PROVIDERS", "sign_state", "verify_state", "authorize_url", "complete_sign_in"]
