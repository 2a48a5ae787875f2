"""
PostgREST writes: insert (POST), update (PATCH), delete (DELETE).

Payloads are plain JSON mappings. A key missing from the mapping is not sent;
a key set to None is sent as JSON null. For partial updates build the payload
with `model.model_dump(exclude_unset=True, mode="json")`.

`filters` has no default on update/delete: pass `[]` to deliberately touch
every row of the table.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from typing import Any

from . import supabase
from .errors import MalformedInputError
from .query import Filter, decode_response, filter_params

logger = logging.getLogger(__name__)

RETURN_REPRESENTATION = "return=representation"


def _check_json_value(value: Any, path: str) -> None:
    if value is None or isinstance(value, (str, bool, int)):
        return
    if isinstance(value, float):
        if not math.isfinite(value):
            raise MalformedInputError(f"{path}: non-finite number is not valid JSON.")
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            if not isinstance(key, str):
                raise MalformedInputError(f"{path}: object keys must be strings.")
            _check_json_value(item, f"{path}.{key}")
        return
    if isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            _check_json_value(item, f"{path}[{index}]")
        return
    raise MalformedInputError(f"{path}: unsupported value type {type(value).__name__}.")


def _check_payload(payload: Any) -> dict[str, Any] | list[dict[str, Any]]:
    if isinstance(payload, Mapping):
        _check_json_value(payload, "payload")
        return dict(payload)
    if not isinstance(payload, Sequence) or isinstance(payload, (str, bytes)):
        raise MalformedInputError("Payload must be an object or a list of objects.")
    if not payload:
        raise MalformedInputError("Payload is empty.")

    rows: list[dict[str, Any]] = []
    for index, row in enumerate(payload):
        if not isinstance(row, Mapping):
            raise MalformedInputError("Payload rows must be objects.")
        _check_json_value(row, f"payload[{index}]")
        rows.append(dict(row))
    return rows


def compile_mutation(
    method: str,
    table: str,
    *,
    payload: Any = None,
    filters: Sequence[Filter] = (),
    returning: bool = False,
    user_token: str | None = None,
) -> supabase.RemoteRequest:
    table = (table or "").strip()
    if not table:
        raise MalformedInputError("Table name is empty.")

    headers = {"Content-Type": "application/json"}
    if returning:
        headers["Prefer"] = RETURN_REPRESENTATION

    return supabase.RemoteRequest(
        method=method,
        path=f"{supabase.REST_PREFIX}/{table}",
        params=filter_params(filters),
        headers=headers,
        body=_check_payload(payload) if payload is not None else None,
        user_token=user_token,
    )


async def _run(
    request: supabase.RemoteRequest,
    *,
    returning: bool,
    into: Any,
    client: supabase.SupabaseClient | None,
) -> Any:
    remote = client or supabase.client()
    resp = await remote.execute(request)
    if not returning:
        return None
    return decode_response(resp, into)


def _audit_unfiltered(method: str, table: str, filters: Sequence[Filter]) -> None:
    if not filters:
        logger.warning("unfiltered_mutation method=%s table=%s", method, table)


async def insert(
    table: str,
    payload: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    *,
    user_token: str | None,
    returning: bool = False,
    into: Any = None,
    client: supabase.SupabaseClient | None = None,
) -> Any:
    """
    Insert one row (mapping) or many (list of mappings).

    Returns the inserted rows decoded into `into` when `returning=True`,
    otherwise None.
    """
    if payload is None:
        raise MalformedInputError("Insert needs a payload.")
    request = compile_mutation("POST", table, payload=payload, returning=returning, user_token=user_token)
    return await _run(request, returning=returning, into=into, client=client)


async def update(
    table: str,
    payload: Mapping[str, Any],
    filters: Sequence[Filter],
    *,
    user_token: str | None,
    returning: bool = False,
    into: Any = None,
    client: supabase.SupabaseClient | None = None,
) -> Any:
    """
    Patch every row matching `filters`.

    With `returning=True` the updated rows come back (an empty list when
    nothing matched, which is not an error).
    """
    if payload is None:
        raise MalformedInputError("Update needs a payload.")
    _audit_unfiltered("PATCH", table, filters)
    request = compile_mutation(
        "PATCH", table, payload=payload, filters=filters, returning=returning, user_token=user_token
    )
    return await _run(request, returning=returning, into=into, client=client)


async def delete(
    table: str,
    filters: Sequence[Filter],
    *,
    user_token: str | None,
    returning: bool = False,
    into: Any = None,
    client: supabase.SupabaseClient | None = None,
) -> Any:
    """
    Delete every row matching `filters`. Succeeds whether or not any row
    matched; query first if existence matters.
    """
    _audit_unfiltered("DELETE", table, filters)
    request = compile_mutation("DELETE", table, filters=filters, returning=returning, user_token=user_token)
    return await _run(request, returning=returning, into=into, client=client)
