"""
Supabase HTTP client (PostgREST + GoTrue auth endpoints) using httpx.

This module owns the shared `httpx.AsyncClient`. FastAPI initializes it on
startup and closes it on shutdown (see `api/main.py`).

Header rules for every request:
- `apikey: <service key>` always
- `Authorization: Bearer <caller token>` when a caller token is given,
  otherwise `Bearer <service key>` (full privilege, internal calls only)

Used endpoints:
- GET|POST|PATCH|DELETE /rest/v1/<table>
- POST /auth/v1/signup
- POST /auth/v1/token?grant_type=password|refresh_token
- POST /auth/v1/logout
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from . import settings
from .errors import DataAccessError, DecodeError, MalformedInputError, RemoteRejectionError, TransportError

logger = logging.getLogger(__name__)

REST_PREFIX = "/rest/v1"
AUTH_PREFIX = "/auth/v1"

_client: SupabaseClient | None = None


@dataclass(frozen=True)
class RemoteRequest:
    """
    A compiled request, ready to send. Built by `core.query` / `core.mutations`
    without doing any I/O so it can be inspected in tests.
    """

    method: str
    path: str
    params: list[tuple[str, str]] = field(default_factory=list)
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    user_token: str | None = None


class SupabaseUser(BaseModel):
    id: str
    email: str | None = None
    created_at: datetime | None = None


class AuthSession(BaseModel):
    access_token: str
    refresh_token: str
    expires_in: int = 0
    token_type: str = "bearer"
    user: SupabaseUser


def _normalize_base_url(base_url: str) -> str:
    base_url = (base_url or "").strip()
    if not base_url:
        raise MalformedInputError("Supabase base URL is empty.")
    return base_url.rstrip("/")


def _rejection_from_response(resp: httpx.Response) -> RemoteRejectionError:
    """
    Build a rejection error from a >= 400 response.

    GoTrue answers `{"error": ..., "error_description": ...}`, PostgREST answers
    `{"message": ..., "code": ..., "details": ..., "hint": ...}`. Anything that
    does not parse falls back to the raw body text.
    """
    body = resp.text
    try:
        data = resp.json()
    except ValueError:
        data = None

    if not isinstance(data, dict):
        return RemoteRejectionError(resp.status_code, body or resp.reason_phrase, body=body)

    error = str(data.get("error") or "").strip()
    description = str(data.get("error_description") or "").strip()
    if error and description:
        message = f"{error}: {description}"
    else:
        message = (
            description
            or str(data.get("message") or data.get("msg") or "").strip()
            or error
            or body
        )

    return RemoteRejectionError(
        resp.status_code,
        message,
        code=str(data["code"]) if data.get("code") is not None else None,
        details=data.get("details"),
        hint=data.get("hint"),
        body=body,
    )


class SupabaseClient:
    """
    Thin authenticated transport. Safe to share between concurrent requests:
    the only mutable state is httpx's internally synchronized connection pool.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        api_key = (api_key or "").strip()
        if not api_key:
            raise MalformedInputError("Supabase API key is empty.")
        self.base_url = _normalize_base_url(base_url)
        self._api_key = api_key
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout_s,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    def auth_headers(self, user_token: str | None = None) -> dict[str, str]:
        token = (user_token or "").strip()
        if not token:
            token = self._api_key
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {token}",
        }

    async def execute(self, request: RemoteRequest) -> httpx.Response:
        """
        Send one request and return the response, or raise.

        Raises `TransportError` for network/timeout failures and
        `RemoteRejectionError` for any status >= 400. Never retries.
        """
        if not (request.user_token or "").strip():
            logger.debug("remote_request using service credential path=%s", request.path)

        headers = self.auth_headers(request.user_token)
        headers.update(request.headers)

        kwargs: dict[str, Any] = {"params": request.params, "headers": headers}
        if request.body is not None:
            kwargs["json"] = request.body

        try:
            resp = await self._http.request(request.method, request.path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("remote_transport_failed method=%s path=%s error=%s", request.method, request.path, exc)
            raise TransportError(f"{request.method} {request.path} failed: {exc}") from exc

        logger.debug("remote_request method=%s path=%s status=%s", request.method, request.path, resp.status_code)

        if resp.status_code >= 400:
            error = _rejection_from_response(resp)
            logger.warning(
                "remote_rejected method=%s path=%s status=%s code=%s message=%s",
                request.method,
                request.path,
                resp.status_code,
                error.code,
                error.message,
            )
            raise error
        return resp

    # --- auth endpoints -------------------------------------------------

    async def _auth_request(self, endpoint: str, payload: dict[str, str], *, grant_type: str | None = None) -> AuthSession:
        params = [("grant_type", grant_type)] if grant_type else []
        resp = await self.execute(
            RemoteRequest(
                method="POST",
                path=f"{AUTH_PREFIX}{endpoint}",
                params=params,
                headers={"Content-Type": "application/json"},
                body=payload,
            )
        )
        try:
            return AuthSession.model_validate_json(resp.content)
        except ValidationError as exc:
            raise DecodeError("Auth response did not match the expected session shape.", body=resp.text) from exc

    async def sign_up(self, email: str, password: str) -> AuthSession:
        return await self._auth_request("/signup", {"email": email, "password": password})

    async def sign_in(self, email: str, password: str) -> AuthSession:
        return await self._auth_request("/token", {"email": email, "password": password}, grant_type="password")

    async def refresh_session(self, refresh_token: str) -> AuthSession:
        return await self._auth_request("/token", {"refresh_token": refresh_token}, grant_type="refresh_token")

    async def sign_out(self, access_token: str) -> None:
        token = (access_token or "").strip()
        if not token:
            raise MalformedInputError("Access token is empty.")
        await self.execute(RemoteRequest(method="POST", path=f"{AUTH_PREFIX}/logout", user_token=token))

    async def sign_out_best_effort(self, access_token: str) -> None:
        """
        Advisory logout: the session is revoked remotely when possible, and any
        failure is discarded. Access tokens stay valid until they expire anyway.
        """
        try:
            await self.sign_out(access_token)
        except DataAccessError as exc:
            logger.debug("sign_out_ignored error=%s", exc)


async def init_client(
    *,
    base_url: str | None = None,
    api_key: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SupabaseClient:
    global _client
    if _client is not None:
        return _client
    _client = SupabaseClient(
        base_url if base_url is not None else settings.supabase_url(),
        api_key if api_key is not None else settings.supabase_key(),
        timeout_s=settings.request_timeout_s(),
        transport=transport,
    )
    return _client


async def close_client() -> None:
    global _client
    if _client is None:
        return None
    await _client.aclose()
    _client = None


def client() -> SupabaseClient:
    if _client is None:
        raise RuntimeError("Supabase client is not initialized. Call init_client() on startup.")
    return _client
