"""Authentication related API routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import User
from ..schemas import AuthResponse, LoginRequest, OAuthStartResponse, ProfileResponse, RegisterRequest
from ..services import authenticate_user, create_access_token, get_current_user, register_user
from ..services.oauth_service import authorize_url, complete_sign_in
from ..services.profile_service import to_profile_response

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register_endpoint(
    payload: RegisterRequest,
    db: Session = Depends(get_session),
) -> AuthResponse:
    user, token = register_user(db, payload)
    return AuthResponse(access_token=token, user_id=user.id, user_type=user.user_type)


@router.post("/login", response_model=AuthResponse)
async def login_endpoint(
    payload: LoginRequest,
    db: Session = Depends(get_session),
) -> AuthResponse:
    user = authenticate_user(db, payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    token = create_access_token(user.id)
    return AuthResponse(access_token=token, user_id=user.id, user_type=user.user_type)


@router.get("/me", response_model=ProfileResponse)
async def me_endpoint(current_user: User = Depends(get_current_user)) -> ProfileResponse:
    return to_profile_response(current_user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout_endpoint(current_user: User = Depends(get_current_user)) -> Response:
    """Tokens are stateless; the client drops its copy."""

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/oauth/{provider}/authorize", response_model=OAuthStartResponse)
async def oauth_authorize_endpoint(
    provider: str,
    redirect_to: str | None = Query(None, max_length=512),
) -> OAuthStartResponse:
    url, state = authorize_url(provider, redirect_to)
    return OAuthStartResponse(provider=provider.lower(), authorize_url=url, state=state)


@router.get("/oauth/{provider}/callback", response_model=AuthResponse)
async def oauth_callback_endpoint(
    provider: str,
    code: str = Query(..., min_length=1),
    state: str = Query(..., min_length=1),
    db: Session = Depends(get_session),
) -> AuthResponse:
    user, token, _redirect_to = await complete_sign_in(db, provider=provider, code=code, state=state)
    return AuthResponse(access_token=token, user_id=user.id, user_type=user.user_type)
