"""
Auth dependencies for protected FastAPI routes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, status

from core import settings

from . import security

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestContext:
    """
    Per-request identity, only ever built from a verified token. Handlers pass
    it explicitly down to services and repositories.
    """

    claims: security.Claims
    access_token: str

    @property
    def user_id(self) -> str:
        return self.claims.sub


def _unauthorized(exc: security.AuthSecurityError) -> HTTPException:
    logger.info("auth_rejected reason=%s", exc.reason)
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=exc.public_message,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_bearer_token(authorization: str | None = Header(default=None)) -> str:
    try:
        return security.extract_bearer_token(authorization)
    except security.AuthSecurityError as exc:
        raise _unauthorized(exc) from exc


async def get_request_context(access_token: str = Depends(get_bearer_token)) -> RequestContext:
    try:
        claims = security.verify_token(access_token, settings.jwt_secret())
    except security.AuthSecurityError as exc:
        raise _unauthorized(exc) from exc
    return RequestContext(claims=claims, access_token=access_token)
