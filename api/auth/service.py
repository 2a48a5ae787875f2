"""
Auth business logic.

Accounts and sessions live in Supabase Auth; this layer only forwards
credentials and reshapes the responses. Remote failure details are logged,
clients get fixed messages.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from core import supabase
from core.errors import DataAccessError, RemoteRejectionError

from . import schemas
from .dependencies import RequestContext

logger = logging.getLogger(__name__)


def _to_auth_response(session: supabase.AuthSession) -> schemas.AuthResponse:
    return schemas.AuthResponse(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_in=session.expires_in,
        user=schemas.UserResponse(
            id=session.user.id,
            email=session.user.email,
            created_at=session.user.created_at,
        ),
    )


def _auth_failed(action: str, exc: DataAccessError, detail: str) -> HTTPException:
    logger.info("auth_%s_failed error=%s", action, exc)
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


async def register(payload: schemas.RegisterRequest) -> schemas.AuthResponse:
    try:
        session = await supabase.client().sign_up(payload.email, payload.password)
    except RemoteRejectionError as exc:
        # Sign-up rejections (duplicate email, weak password) are safe to echo.
        raise _auth_failed("register", exc, exc.message) from exc
    except DataAccessError as exc:
        raise _auth_failed("register", exc, "Registration failed.") from exc
    return _to_auth_response(session)


async def login(payload: schemas.LoginRequest) -> schemas.AuthResponse:
    try:
        session = await supabase.client().sign_in(payload.email, payload.password)
    except DataAccessError as exc:
        raise _auth_failed("login", exc, "Invalid email or password") from exc
    return _to_auth_response(session)


async def refresh(payload: schemas.RefreshRequest) -> schemas.AuthResponse:
    refresh_token = (payload.refresh_token or "").strip()
    if not refresh_token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Refresh token is required",
        )
    try:
        session = await supabase.client().refresh_session(refresh_token)
    except DataAccessError as exc:
        raise _auth_failed("refresh", exc, "Invalid or expired refresh token") from exc
    return _to_auth_response(session)


async def logout(access_token: str) -> dict[str, str]:
    await supabase.client().sign_out_best_effort(access_token)
    return {"message": "Logged out successfully"}


def me(ctx: RequestContext) -> schemas.MeResponse:
    return schemas.MeResponse(id=ctx.claims.sub, email=ctx.claims.email, role=ctx.claims.role)
