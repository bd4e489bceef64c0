from typing import List, Optional
from pydantic import BaseModel, Field, StrictBool, StrictInt, field_validator


class HomeBlockIn(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    isVisible: StrictBool
    order: StrictInt


class HomeBlocksIn(BaseModel):
    blocks: List[HomeBlockIn] = Field(..., min_length=1)

    @field_validator("blocks")
    @classmethod
    def unique_ids(cls, blocks):
        ids = [b.id for b in blocks]
        if len(ids) != len(set(ids)):
            raise ValueError("Block ids must be unique")
        return blocks


class BlockVisibilityIn(BaseModel):
    isVisible: StrictBool


class BlockOrderIn(BaseModel):
    newOrder: StrictInt = Field(..., ge=1)


def block_out(block) -> dict:
    return {
        "id": block.key,
        "title": block.title,
        "description": block.description,
        "isVisible": block.is_visible,
        "order": block.position,
    }
