"""
Item API endpoints. All routes require a verified bearer token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from auth import dependencies as auth_dependencies

from . import service
from .schemas import CreateItemRequest, ItemResponse, UpdateItemRequest

router = APIRouter(prefix="/api/v1")


@router.get("/items")
async def list_items(
    limit: int | None = Query(default=None, ge=1, le=500),
    offset: int | None = Query(default=None, ge=0),
    ctx: auth_dependencies.RequestContext = Depends(auth_dependencies.get_request_context),
) -> list[ItemResponse]:
    return await service.list_items(ctx, limit=limit, offset=offset)


@router.get("/items/{item_id}")
async def get_item(
    item_id: str,
    ctx: auth_dependencies.RequestContext = Depends(auth_dependencies.get_request_context),
) -> ItemResponse:
    return await service.get_item(item_id, ctx)


@router.post("/items", status_code=status.HTTP_201_CREATED)
async def create_item(
    payload: CreateItemRequest,
    ctx: auth_dependencies.RequestContext = Depends(auth_dependencies.get_request_context),
) -> ItemResponse:
    return await service.create_item(payload, ctx)


@router.patch("/items/{item_id}")
async def update_item(
    item_id: str,
    payload: UpdateItemRequest,
    ctx: auth_dependencies.RequestContext = Depends(auth_dependencies.get_request_context),
) -> ItemResponse:
    return await service.update_item(item_id, payload, ctx)


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(
    item_id: str,
    ctx: auth_dependencies.RequestContext = Depends(auth_dependencies.get_request_context),
) -> Response:
    await service.delete_item(item_id, ctx)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
