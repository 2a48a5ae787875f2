"""
Item business logic: ownership checks on top of the repository.

RLS already hides other users' rows when the caller token is forwarded; the
explicit owner comparison keeps the API correct even on a table without
policies.
"""

from __future__ import annotations

from fastapi import HTTPException, status

from auth.dependencies import RequestContext
from core.errors import NotFoundError

from . import repository
from .schemas import CreateItemRequest, Item, ItemResponse, UpdateItemRequest


async def _get_owned(item_id: str, ctx: RequestContext) -> Item:
    """
    Fetch an item the caller owns. Writes must target `item.id`, not the raw
    path value, so they hit the row that was checked.
    """
    item_id = (item_id or "").strip()
    if not item_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Item ID is required")

    try:
        item = await repository.get_by_id(item_id, user_token=ctx.access_token)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found") from exc

    if item.user_id != ctx.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return item


async def list_items(ctx: RequestContext, *, limit: int | None = None, offset: int | None = None) -> list[ItemResponse]:
    items = await repository.list_by_user(ctx.user_id, user_token=ctx.access_token, limit=limit, offset=offset)
    return [ItemResponse.from_item(item) for item in items]


async def get_item(item_id: str, ctx: RequestContext) -> ItemResponse:
    return ItemResponse.from_item(await _get_owned(item_id, ctx))


async def create_item(payload: CreateItemRequest, ctx: RequestContext) -> ItemResponse:
    item = await repository.create(user_id=ctx.user_id, payload=payload, user_token=ctx.access_token)
    if item is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create item")
    return ItemResponse.from_item(item)


async def update_item(item_id: str, payload: UpdateItemRequest, ctx: RequestContext) -> ItemResponse:
    owned = await _get_owned(item_id, ctx)
    item = await repository.update(owned.id, payload, user_token=ctx.access_token)
    if item is None:
        # Deleted between the ownership check and the update.
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    return ItemResponse.from_item(item)


async def delete_item(item_id: str, ctx: RequestContext) -> None:
    owned = await _get_owned(item_id, ctx)
    await repository.delete(owned.id, user_token=ctx.access_token)
