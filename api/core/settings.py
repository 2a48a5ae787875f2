"""
Environment-driven settings.

Values are read on call, not at import time, so tests can patch the
environment and the app only fails when a missing value is actually needed.
"""

from __future__ import annotations

import os


def _env_str(name: str, default: str = "") -> str:
    return os.environ.get(name, "").strip() or default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def supabase_url() -> str:
    url = _env_str("SUPABASE_URL")
    if not url:
        raise RuntimeError("SUPABASE_URL is not set.")
    return url.rstrip("/")


def supabase_key() -> str:
    # Service-role key preferred; SUPABASE_KEY kept for older deployments.
    key = _env_str("SUPABASE_SERVICE_ROLE") or _env_str("SUPABASE_KEY")
    if not key:
        raise RuntimeError("SUPABASE_KEY (or SUPABASE_SERVICE_ROLE) is not set.")
    return key


def jwt_secret() -> str:
    secret = _env_str("SUPABASE_JWT_SECRET")
    if not secret:
        raise RuntimeError("SUPABASE_JWT_SECRET is not set.")
    return secret


def request_timeout_s() -> float:
    return _env_float("SUPABASE_TIMEOUT_S", 30.0)


DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://127.0.0.1:5173"


def cors_origins() -> list[str]:
    raw = _env_str("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def log_level() -> str:
    return _env_str("LOG_LEVEL", "INFO").upper()


def port() -> int:
    return _env_int("PORT", 8080)
