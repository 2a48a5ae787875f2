"""
Bearer token verification for Supabase-issued access tokens.

Tokens are signed by Supabase with the project's JWT secret (HMAC). Only
HS256/HS384/HS512 are accepted; a token advertising any other algorithm
(RS*, ES*, none, ...) is rejected before signature checking.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import jwt

HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")

GENERIC_TOKEN_MESSAGE = "Invalid or expired token"


class AuthSecurityError(RuntimeError):
    """
    Unauthorized outcome. `reason` is for logs and tests; `public_message` is
    what clients get to see.
    """

    public_message = GENERIC_TOKEN_MESSAGE

    def __init__(self, reason: str, message: str = "") -> None:
        super().__init__(message or reason)
        self.reason = reason


class MalformedHeaderError(AuthSecurityError):
    public_message = "Invalid authorization header"


@dataclass(frozen=True)
class Claims:
    sub: str
    email: str
    role: str

    @property
    def user_id(self) -> str:
        return self.sub


def extract_bearer_token(authorization: str | None) -> str:
    raw = authorization or ""
    if not raw.strip():
        raise MalformedHeaderError("missing_header", "Authorization header is required.")

    parts = raw.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        raise MalformedHeaderError("malformed_header", "Authorization must be: Bearer <token>.")
    return parts[1]


def decode_access_token(token: str, secret: str, *, leeway_s: int = 0) -> dict[str, Any]:
    raw = (token or "").strip()
    if not raw:
        raise AuthSecurityError("invalid_token", "Access token is empty.")

    try:
        header = jwt.get_unverified_header(raw)
    except jwt.InvalidTokenError as exc:
        raise AuthSecurityError("invalid_token", "Access token is not a JWT.") from exc

    algorithm = header.get("alg")
    if algorithm not in HMAC_ALGORITHMS:
        raise AuthSecurityError("wrong_algorithm", f"Signing algorithm {algorithm!r} is not allowed.")

    try:
        return jwt.decode(
            raw,
            secret,
            algorithms=list(HMAC_ALGORITHMS),
            leeway=leeway_s,
            # Supabase sets aud="authenticated"; role checks happen on the claims.
            options={"verify_aud": False, "require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthSecurityError("expired", "Access token has expired.") from exc
    except jwt.ImmatureSignatureError as exc:
        raise AuthSecurityError("not_yet_valid", "Access token is not valid yet.") from exc
    except jwt.MissingRequiredClaimError as exc:
        raise AuthSecurityError("invalid_claims", f"Access token has no {exc.claim!r} claim.") from exc
    except jwt.InvalidSignatureError as exc:
        raise AuthSecurityError("invalid_signature", "Access token signature mismatch.") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthSecurityError("invalid_token", "Invalid access token.") from exc


def claims_from_payload(payload: dict[str, Any]) -> Claims:
    subject = str(payload.get("sub") or "").strip()
    if not subject:
        raise AuthSecurityError("invalid_claims", "Access token has no subject.")
    return Claims(
        sub=subject,
        email=str(payload.get("email") or ""),
        role=str(payload.get("role") or ""),
    )


def verify_token(token: str, secret: str) -> Claims:
    return claims_from_payload(decode_access_token(token, secret))


def verify_authorization_header(authorization: str | None, secret: str) -> tuple[Claims, str]:
    """
    Validate a raw `Authorization` header value.

    Returns the claims and the bearer token (needed to forward the caller's
    credential to PostgREST for row-level security).
    """
    token = extract_bearer_token(authorization)
    return verify_token(token, secret), token
