"""
Item schemas: the stored row shape plus API request/response models.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class Item(BaseModel):
    id: str
    user_id: str
    title: str
    description: str | None = None
    completed: bool = False
    created_at: datetime
    updated_at: datetime | None = None


class CreateItemRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = None


class UpdateItemRequest(BaseModel):
    # Only fields the client actually sent are written (see repository.update).
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    completed: bool | None = None


class ItemResponse(BaseModel):
    id: str
    title: str
    description: str | None = None
    completed: bool
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_item(cls, item: Item) -> ItemResponse:
        return cls.model_validate(item.model_dump(exclude={"user_id"}))
