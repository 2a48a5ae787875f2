"""
Auth API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException, status

from . import dependencies, schemas, security, service

router = APIRouter(prefix="/auth")


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(payload: schemas.RegisterRequest) -> schemas.AuthResponse:
    return await service.register(payload)


@router.post("/login")
async def login(payload: schemas.LoginRequest) -> schemas.AuthResponse:
    return await service.login(payload)


@router.post("/refresh")
async def refresh(payload: schemas.RefreshRequest) -> schemas.AuthResponse:
    return await service.refresh(payload)


@router.post("/logout")
async def logout(authorization: str | None = Header(default=None)) -> dict:
    # Logout does not verify the token: an expired session should still be
    # able to ask for revocation.
    try:
        token = security.extract_bearer_token(authorization)
    except security.MalformedHeaderError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.public_message) from exc
    return await service.logout(token)


@router.get("/me")
async def me(
    ctx: dependencies.RequestContext = Depends(dependencies.get_request_context),
) -> schemas.MeResponse:
    return service.me(ctx)
