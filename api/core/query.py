"""
PostgREST read queries as immutable values.

Each builder method returns a new `Query`; nothing is sent until `execute()`.
`compile_query()` turns a `Query` into a `RemoteRequest` without I/O:

    GET /rest/v1/<table>?select=<cols>&<col>=<op>.<val>&order=<col>[.desc]&limit=<n>&offset=<n>

Example:
    rows = await (
        query.from_("items")
        .eq("user_id", user_id)
        .order("created_at", ascending=False)
        .with_token(access_token)
        .execute(list[Item])
    )
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

import httpx
from pydantic import TypeAdapter, ValidationError

from . import supabase
from .errors import AmbiguousResultError, DecodeError, MalformedInputError, NotFoundError, RemoteRejectionError

SINGLE_OBJECT_MEDIA_TYPE = "application/vnd.pgrst.object+json"

# PostgREST error code for "single object requested, 0 or >1 rows found".
_SINGULAR_ERROR_CODE = "PGRST116"
_ROW_COUNT_RE = re.compile(r"(\d+)\s+rows?")

_IS_VALUES = {"null", "true", "false", "unknown"}
_IN_RESERVED = re.compile(r'[,()"\s]')


class FilterOperator(str, Enum):
    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    LIKE = "like"
    ILIKE = "ilike"
    IN = "in"
    IS = "is"


def _literal(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _in_item(value: Any) -> str:
    text = _literal(value)
    if _IN_RESERVED.search(text):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


@dataclass(frozen=True)
class Filter:
    """
    One `column=<operator>.<value>` condition. All filters of a query are ANDed.

    `value` is stored already rendered; use `Filter.of()` to build one from
    Python values (lists for `in`, None/bools for `is`).
    """

    column: str
    operator: FilterOperator
    value: str

    def __post_init__(self) -> None:
        column = (self.column or "").strip()
        if not column:
            raise MalformedInputError("Filter column is empty.")
        try:
            operator = FilterOperator(self.operator)
        except ValueError as exc:
            raise MalformedInputError(f"Unknown filter operator: {self.operator!r}") from exc
        if operator is FilterOperator.IS and self.value not in _IS_VALUES:
            raise MalformedInputError(f"'is' filter accepts only {sorted(_IS_VALUES)}, got {self.value!r}")
        object.__setattr__(self, "column", column)
        object.__setattr__(self, "operator", operator)

    @classmethod
    def of(cls, column: str, operator: FilterOperator | str, value: Any) -> Filter:
        if str(getattr(operator, "value", operator)) == FilterOperator.IN.value:
            if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
                raise MalformedInputError("'in' filter needs a list of values.")
            rendered = "(" + ",".join(_in_item(v) for v in value) + ")"
        else:
            rendered = _literal(value)
        return cls(column, operator, rendered)  # type: ignore[arg-type]

    def as_param(self) -> tuple[str, str]:
        return self.column, f"{self.operator.value}.{self.value}"


def filter_params(filters: Iterable[Filter]) -> list[tuple[str, str]]:
    return [f.as_param() for f in filters]


@dataclass(frozen=True)
class Order:
    column: str
    ascending: bool = True


@dataclass(frozen=True)
class Query:
    table: str
    columns: tuple[str, ...] = ("*",)
    filters: tuple[Filter, ...] = ()
    order_by: Order | None = None
    row_limit: int | None = None
    row_offset: int | None = None
    single_row: bool = False
    user_token: str | None = None

    def select(self, *columns: str) -> Query:
        cleaned = tuple(c.strip() for c in columns if c and c.strip())
        if not cleaned:
            return self
        return replace(self, columns=cleaned)

    def filter(self, column: str, operator: FilterOperator | str, value: Any) -> Query:
        return replace(self, filters=self.filters + (Filter.of(column, operator, value),))

    def eq(self, column: str, value: Any) -> Query:
        return self.filter(column, FilterOperator.EQ, value)

    def neq(self, column: str, value: Any) -> Query:
        return self.filter(column, FilterOperator.NEQ, value)

    def gt(self, column: str, value: Any) -> Query:
        return self.filter(column, FilterOperator.GT, value)

    def gte(self, column: str, value: Any) -> Query:
        return self.filter(column, FilterOperator.GTE, value)

    def lt(self, column: str, value: Any) -> Query:
        return self.filter(column, FilterOperator.LT, value)

    def lte(self, column: str, value: Any) -> Query:
        return self.filter(column, FilterOperator.LTE, value)

    def like(self, column: str, pattern: str) -> Query:
        return self.filter(column, FilterOperator.LIKE, pattern)

    def ilike(self, column: str, pattern: str) -> Query:
        return self.filter(column, FilterOperator.ILIKE, pattern)

    def in_(self, column: str, values: Iterable[Any]) -> Query:
        return self.filter(column, FilterOperator.IN, values)

    def is_(self, column: str, value: bool | None) -> Query:
        return self.filter(column, FilterOperator.IS, value)

    def order(self, column: str, ascending: bool = True) -> Query:
        column = (column or "").strip()
        if not column:
            raise MalformedInputError("Order column is empty.")
        return replace(self, order_by=Order(column, ascending))

    def limit(self, n: int) -> Query:
        if n < 0:
            raise MalformedInputError("Limit must be >= 0.")
        return replace(self, row_limit=n)

    def offset(self, n: int) -> Query:
        if n < 0:
            raise MalformedInputError("Offset must be >= 0.")
        return replace(self, row_offset=n)

    def single(self) -> Query:
        """
        Expect exactly one row. The response is a single object, and zero or
        multiple matches raise `NotFoundError` / `AmbiguousResultError`.
        """
        return replace(self, single_row=True, row_limit=1)

    def with_token(self, token: str | None) -> Query:
        return replace(self, user_token=token)

    def compile(self) -> supabase.RemoteRequest:
        return compile_query(self)

    async def execute(self, into: Any = None, *, client: supabase.SupabaseClient | None = None) -> Any:
        return await execute_query(self, into, client=client)


def from_(table: str) -> Query:
    table = (table or "").strip()
    if not table:
        raise MalformedInputError("Table name is empty.")
    return Query(table=table)


def compile_query(q: Query) -> supabase.RemoteRequest:
    params: list[tuple[str, str]] = [("select", ",".join(q.columns))]
    params.extend(filter_params(q.filters))

    if q.order_by is not None:
        order = q.order_by.column if q.order_by.ascending else f"{q.order_by.column}.desc"
        params.append(("order", order))

    limit = 1 if q.single_row else q.row_limit
    if limit:
        params.append(("limit", str(limit)))
    if q.row_offset:
        params.append(("offset", str(q.row_offset)))

    headers = {"Accept": SINGLE_OBJECT_MEDIA_TYPE} if q.single_row else {}

    return supabase.RemoteRequest(
        method="GET",
        path=f"{supabase.REST_PREFIX}/{q.table}",
        params=params,
        headers=headers,
        user_token=q.user_token,
    )


def decode_response(resp: httpx.Response, into: Any = None) -> Any:
    """
    Parse a JSON body, then validate it into `into` (any pydantic-compatible
    type, e.g. `list[Item]`). With `into=None` the parsed JSON is returned.
    """
    try:
        data = resp.json()
    except ValueError as exc:
        raise DecodeError("Response body is not valid JSON.", body=resp.text) from exc

    if into is None:
        return data
    try:
        return TypeAdapter(into).validate_python(data)
    except ValidationError as exc:
        raise DecodeError(f"Response did not match {into!r}: {exc.error_count()} error(s).", body=data) from exc


def _singular_error(q: Query, exc: RemoteRejectionError) -> Exception:
    text = f"{exc.details or ''} {exc.message}"
    match = _ROW_COUNT_RE.search(text)
    if match is not None and int(match.group(1)) > 1:
        return AmbiguousResultError(f"Expected one row from {q.table}, found {match.group(1)}.")
    return NotFoundError(f"No matching row in {q.table}.")


async def execute_query(q: Query, into: Any = None, *, client: supabase.SupabaseClient | None = None) -> Any:
    request = compile_query(q)
    remote = client or supabase.client()
    try:
        resp = await remote.execute(request)
    except RemoteRejectionError as exc:
        if q.single_row and (exc.code == _SINGULAR_ERROR_CODE or exc.status_code == 406):
            raise _singular_error(q, exc) from exc
        raise
    return decode_response(resp, into)
