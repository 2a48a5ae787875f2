"""
Data-access failure taxonomy.

Every failure the remote client, query builder or mutation helpers can raise
is a `DataAccessError`, so callers can catch the whole family or one kind.
Unauthorized failures live in `auth.security` because they never touch the
remote service.
"""

from __future__ import annotations

from typing import Any


class DataAccessError(RuntimeError):
    pass


class MalformedInputError(DataAccessError, ValueError):
    """Caller-side mistake detected before any network call."""


class TransportError(DataAccessError):
    """Network, connection or timeout failure talking to the remote service."""


class RemoteRejectionError(DataAccessError):
    """The remote service answered with status >= 400."""

    def __init__(
        self,
        status_code: int,
        message: str,
        *,
        code: str | None = None,
        details: str | None = None,
        hint: str | None = None,
        body: str = "",
    ) -> None:
        super().__init__(f"remote request failed ({status_code}): {message}")
        self.status_code = status_code
        self.message = message
        self.code = code
        self.details = details
        self.hint = hint
        self.body = body


class DecodeError(DataAccessError):
    """Response status was fine but the payload did not match the expected shape."""

    def __init__(self, message: str, *, body: Any = None) -> None:
        super().__init__(message)
        self.body = body


class NotFoundError(DataAccessError):
    """Single-row read matched no rows."""


class AmbiguousResultError(DataAccessError):
    """Single-row read matched more than one row."""
