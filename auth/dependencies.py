"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Protected routes accept an access token in the Authorization: Bearer header.
Refresh tokens are never accepted here: verification runs with the access
secret only, so a refresh token fails the signature check.

get_session_service() hands route handlers the SessionService built in the
lifespan (app.state.session_service).

get_current_claims() raises the typed AuthError (InvalidToken / TokenExpired);
the exception handler in api/main.py renders it as a 401 envelope.

auth/dependencies.py may import from fastapi because it is part of the FastAPI
dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.errors import InvalidToken
from auth.models import AccessClaims
from auth.service import SessionService


def get_session_service(request: Request) -> SessionService:
    return request.app.state.session_service


def get_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def get_current_claims(
    request: Request,
    service: SessionService = Depends(get_session_service),
) -> AccessClaims:
    """Require a valid access token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: AccessClaims = Depends(get_current_claims)): ...
    """
    token = get_bearer_token(request)
    if token is None:
        raise InvalidToken("No token provided.")
    return service.authenticate(token)
