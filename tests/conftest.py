"""
Shared pytest fixtures.

`FakeSupabase` is an in-memory stand-in for the PostgREST and GoTrue
endpoints, plugged into httpx through `httpx.MockTransport`. It understands
just enough of the wire protocol for the tests: the filter operators, order,
limit/offset, the single-object Accept header and `Prefer: return=representation`.
"""

from __future__ import annotations

import json
import re
import time
import uuid
from collections import defaultdict
from typing import Any

import httpx
import jwt
import pytest

from core import supabase

BASE_URL = "https://project.supabase.test"
SERVICE_KEY = "service-role-key"
JWT_SECRET = "test-jwt-secret-with-enough-length-1234"

_RESERVED_PARAMS = {"select", "order", "limit", "offset"}


def _render(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _compare(left: Any, right: str) -> int:
    try:
        a, b = float(left), float(right)
    except (TypeError, ValueError):
        a, b = _render(left), right
    return (a > b) - (a < b)


def _like(value: Any, pattern: str, flags: int = 0) -> bool:
    regex = "^" + re.escape(pattern).replace(r"\*", ".*").replace("%", ".*") + "$"
    return value is not None and re.match(regex, str(value), flags) is not None


def _in_values(raw: str) -> list[str]:
    inner = raw[1:-1] if raw.startswith("(") and raw.endswith(")") else raw
    return [v.strip().strip('"') for v in inner.split(",") if v.strip()]


def _matches(row: dict[str, Any], column: str, expr: str) -> bool:
    op, _, raw = expr.partition(".")
    value = row.get(column)
    if op == "eq":
        return _render(value) == raw
    if op == "neq":
        return _render(value) != raw
    if op in ("gt", "gte", "lt", "lte"):
        if value is None:
            return False
        c = _compare(value, raw)
        return {"gt": c > 0, "gte": c >= 0, "lt": c < 0, "lte": c <= 0}[op]
    if op == "like":
        return _like(value, raw)
    if op == "ilike":
        return _like(value, raw, re.IGNORECASE)
    if op == "in":
        return _render(value) in _in_values(raw)
    if op == "is":
        return _render(value) == raw
    raise AssertionError(f"fake PostgREST got unknown operator {op!r}")


def _json(status_code: int, data: Any) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(data).encode(), headers={"content-type": "application/json"})


class FakeSupabase:
    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.requests: list[httpx.Request] = []
        self.users: dict[str, dict[str, Any]] = {}
        self.fail_logout = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith("/rest/v1/"):
            return self._rest(request, path[len("/rest/v1/"):])
        if path.startswith("/auth/v1/"):
            return self._auth(request, path[len("/auth/v1/"):])
        return _json(404, {"message": "not found"})

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    def seed(self, table: str, *rows: dict[str, Any]) -> None:
        for row in rows:
            self.tables[table].append({"id": str(uuid.uuid4()), **row})

    # --- PostgREST -------------------------------------------------------

    def _select(self, request: httpx.Request, table: str) -> list[dict[str, Any]]:
        rows = self.tables[table]
        for column, expr in request.url.params.multi_items():
            if column in _RESERVED_PARAMS:
                continue
            rows = [r for r in rows if _matches(r, column, expr)]
        return list(rows)

    def _rest(self, request: httpx.Request, table: str) -> httpx.Response:
        returning = request.headers.get("prefer") == "return=representation"

        if request.method == "GET":
            rows = self._select(request, table)
            order = request.url.params.get("order")
            if order:
                column, _, direction = order.partition(".")
                rows.sort(key=lambda r: _render(r.get(column)), reverse=direction == "desc")
            offset = int(request.url.params.get("offset", "0"))
            rows = rows[offset:]
            if "limit" in request.url.params:
                rows = rows[: int(request.url.params["limit"])]
            if request.headers.get("accept") == "application/vnd.pgrst.object+json":
                # Checked after limit, as PostgREST does; limit=1 hides extra matches.
                total = len(rows)
                if total != 1:
                    return _json(
                        406,
                        {
                            "code": "PGRST116",
                            "details": f"The result contains {total} rows",
                            "hint": None,
                            "message": "JSON object requested, multiple (or no) rows returned",
                        },
                    )
                return _json(200, rows[0])
            return _json(200, rows)

        if request.method == "POST":
            body = json.loads(request.content)
            new_rows = body if isinstance(body, list) else [body]
            created = []
            for row in new_rows:
                stored = {"id": str(uuid.uuid4()), **row}
                self.tables[table].append(stored)
                created.append(dict(stored))
            return _json(201, created) if returning else httpx.Response(201)

        if request.method == "PATCH":
            changes = json.loads(request.content)
            matched = self._select(request, table)
            for row in matched:
                row.update(changes)
            return _json(200, [dict(r) for r in matched]) if returning else httpx.Response(204)

        if request.method == "DELETE":
            matched = self._select(request, table)
            self.tables[table] = [r for r in self.tables[table] if r not in matched]
            return _json(200, matched) if returning else httpx.Response(204)

        return _json(405, {"message": "method not allowed"})

    # --- GoTrue ----------------------------------------------------------

    def _session(self, user: dict[str, Any]) -> dict[str, Any]:
        return {
            "access_token": make_token(sub=user["id"], email=user["email"]),
            "refresh_token": f"refresh-{user['id']}",
            "expires_in": 3600,
            "token_type": "bearer",
            "user": user,
        }

    def _auth(self, request: httpx.Request, endpoint: str) -> httpx.Response:
        if endpoint == "logout":
            return _json(500, {"message": "boom"}) if self.fail_logout else httpx.Response(204)

        body = json.loads(request.content or b"{}")
        if endpoint == "signup":
            if body["email"] in self.users:
                return _json(422, {"error": "user_exists", "error_description": "User already registered"})
            user = {"id": str(uuid.uuid4()), "email": body["email"], "created_at": "2026-01-01T00:00:00Z"}
            self.users[body["email"]] = {**user, "password": body["password"]}
            return _json(200, self._session(user))

        if endpoint == "token":
            grant = request.url.params.get("grant_type")
            if grant == "password":
                stored = self.users.get(body.get("email", ""))
                if stored is None or stored["password"] != body.get("password"):
                    return _json(400, {"error": "invalid_grant", "error_description": "Invalid login credentials"})
                user = {k: v for k, v in stored.items() if k != "password"}
                return _json(200, self._session(user))
            if grant == "refresh_token":
                for stored in self.users.values():
                    if body.get("refresh_token") == f"refresh-{stored['id']}":
                        user = {k: v for k, v in stored.items() if k != "password"}
                        return _json(200, self._session(user))
                return _json(400, {"error": "invalid_grant", "error_description": "Invalid Refresh Token"})

        return _json(404, {"error": "not_found"})


def make_token(
    *,
    sub: str = "u1",
    email: str = "u1@example.com",
    role: str = "authenticated",
    expires_in: int = 3600,
    secret: str = JWT_SECRET,
    algorithm: str = "HS256",
    **extra: Any,
) -> str:
    now = int(time.time())
    payload = {
        "sub": sub,
        "email": email,
        "role": role,
        "aud": "authenticated",
        "iat": now,
        "exp": now + expires_in,
        **extra,
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


@pytest.fixture(autouse=True)
def supabase_env(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", BASE_URL)
    monkeypatch.setenv("SUPABASE_KEY", SERVICE_KEY)
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE", raising=False)
    monkeypatch.setenv("SUPABASE_JWT_SECRET", JWT_SECRET)


@pytest.fixture
def fake():
    return FakeSupabase()


@pytest.fixture
async def client(fake):
    """A standalone client talking to the fake."""
    remote = supabase.SupabaseClient(BASE_URL, SERVICE_KEY, transport=httpx.MockTransport(fake))
    yield remote
    await remote.aclose()


@pytest.fixture
def bound_client(fake, monkeypatch):
    """
    Install a fake-backed client as the process-wide client, the way the app
    lifespan would. Sync so it also works with FastAPI's TestClient.
    """
    remote = supabase.SupabaseClient(BASE_URL, SERVICE_KEY, transport=httpx.MockTransport(fake))
    monkeypatch.setattr(supabase, "_client", remote)
    return remote


@pytest.fixture
def api(bound_client):
    from fastapi.testclient import TestClient

    from main import app

    with TestClient(app) as test_client:
        yield test_client
