"""
Item persistence over PostgREST.

Every function takes the caller's access token so row-level security applies
on the Supabase side. There is deliberately no default for `user_token`.
"""

from __future__ import annotations

from datetime import datetime, timezone

from core import mutations, query
from core.query import Filter, FilterOperator

from .schemas import CreateItemRequest, Item, UpdateItemRequest

TABLE = "items"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _by_id(item_id: str) -> list[Filter]:
    return [Filter.of("id", FilterOperator.EQ, item_id)]


async def create(*, user_id: str, payload: CreateItemRequest, user_token: str | None) -> Item | None:
    row = {
        "user_id": user_id,
        "title": payload.title,
        "description": payload.description,
        "completed": False,
        "created_at": _utc_now_iso(),
    }
    rows = await mutations.insert(TABLE, row, user_token=user_token, returning=True, into=list[Item])
    return rows[0] if rows else None


async def get_by_id(item_id: str, *, user_token: str | None) -> Item:
    """
    Raises `core.errors.NotFoundError` when no visible row has this id.
    """
    return await query.from_(TABLE).eq("id", item_id).with_token(user_token).single().execute(Item)


async def list_by_user(
    user_id: str,
    *,
    user_token: str | None,
    limit: int | None = None,
    offset: int | None = None,
) -> list[Item]:
    q = query.from_(TABLE).eq("user_id", user_id).order("created_at", ascending=False).with_token(user_token)
    if limit is not None:
        q = q.limit(limit)
    if offset is not None:
        q = q.offset(offset)
    return await q.execute(list[Item])


async def update(item_id: str, payload: UpdateItemRequest, *, user_token: str | None) -> Item | None:
    changes = payload.model_dump(exclude_unset=True, mode="json")
    changes["updated_at"] = _utc_now_iso()

    rows = await mutations.update(
        TABLE,
        changes,
        _by_id(item_id),
        user_token=user_token,
        returning=True,
        into=list[Item],
    )
    return rows[0] if rows else None


async def delete(item_id: str, *, user_token: str | None) -> None:
    await mutations.delete(TABLE, _by_id(item_id), user_token=user_token)
