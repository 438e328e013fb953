"""
api/routes/v1/auth.py -- Authentication and session REST endpoints.

Routes:
  POST /api/v1/auth/register         -- create account; returns token pair (201)
  POST /api/v1/auth/login            -- password login; returns token pair
  POST /api/v1/auth/refresh          -- exchange refresh token for a new pair
  POST /api/v1/auth/logout           -- revoke refresh token; always 200
  GET  /api/v1/auth/me               -- profile of the access token's user
  PUT  /api/v1/auth/change-password  -- change password, revoke all sessions

Security:
  [H2] register and login are rate-limited per client address (LOGIN_RATE_LIMIT).
  [M5] Cache-Control: no-store on every response that carries tokens.
  Handlers are plain `def`: bcrypt and the store block, so FastAPI runs them in
  its threadpool instead of on the event loop.

No `from __future__ import annotations` here: FastAPI resolves string
annotations against the wrapper's globals once slowapi has wrapped a handler.

Errors are raised as AuthError by the service and rendered by the handler in
api/main.py; handlers never build error responses themselves.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import credential_rate_limit, limiter
from api.models import (
    ChangePasswordRequest,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    ProfileResponse,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
)
from auth.dependencies import get_current_claims, get_session_service
from auth.models import AccessClaims, AuthTokens
from auth.service import SessionService

# Auth policy:
# - POST /auth/register, /auth/login, /auth/refresh, /auth/logout: public
# - GET  /auth/me, PUT /auth/change-password: Bearer access token (get_current_claims)
router = APIRouter()


def _token_response(tokens: AuthTokens, status_code: int = 200) -> JSONResponse:
    body = TokenResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=tokens.expires_in,
    )
    resp = JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=TokenResponse, status_code=201)
@limiter.limit(credential_rate_limit)  # [H2] below @router so FastAPI registers the rate-limited wrapper
def register(
    request: Request,
    body: RegisterRequest,
    service: SessionService = Depends(get_session_service),
) -> JSONResponse:
    """Create an account and open its first session."""
    tokens = service.register(body.email, body.password, body.full_name)
    return _token_response(tokens, status_code=201)


@router.post("/auth/login", response_model=TokenResponse)
@limiter.limit(credential_rate_limit)  # [H2]
def login(
    request: Request,
    body: LoginRequest,
    service: SessionService = Depends(get_session_service),
) -> JSONResponse:
    """Authenticate with email and password.

    The User-Agent header and client address are stored on the refresh record
    as opaque metadata; they are not checked on later refreshes.
    """
    tokens = service.login(
        body.email,
        body.password,
        device_info=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
    )
    return _token_response(tokens)


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(
    body: RefreshRequest,
    service: SessionService = Depends(get_session_service),
) -> JSONResponse:
    """Issue a new token pair for a valid, unrevoked refresh token."""
    return _token_response(service.refresh_access_token(body.refresh_token))


@router.post("/auth/logout", response_model=MessageResponse)
def logout(
    body: LogoutRequest | None = None,
    service: SessionService = Depends(get_session_service),
) -> MessageResponse:
    """Revoke the given refresh token. Succeeds even for unknown or invalid tokens."""
    if body is not None and body.refresh_token:
        service.logout(body.refresh_token)
    return MessageResponse(message="Logged out successfully.")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=ProfileResponse)
def me(
    claims: AccessClaims = Depends(get_current_claims),
    service: SessionService = Depends(get_session_service),
) -> ProfileResponse:
    """Return the profile of the user the access token was issued to."""
    user = service.get_profile(claims.user_id)
    return ProfileResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        is_active=user.is_active,
        created_at=user.created_at,
        last_login=user.last_login,
    )


@router.put("/auth/change-password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    claims: AccessClaims = Depends(get_current_claims),
    service: SessionService = Depends(get_session_service),
) -> MessageResponse:
    """Change the caller's password. Every refresh token of the user is revoked.

    Access tokens already issued stay valid until they expire (15 minutes by
    default); they cannot be revoked individually.
    """
    service.change_password(claims.user_id, body.old_password, body.new_password)
    return MessageResponse(message="Password changed successfully.")
