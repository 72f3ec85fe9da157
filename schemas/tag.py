"""
Pydantic schemas for tags.
"""
from typing import List, Optional
from pydantic import BaseModel, Field


class TagCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)


class TagUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)


class TagRead(BaseModel):
    id: int
    name: str
    slug: str
    usage_count: int = 0

    class Config:
        from_attributes = True


class ContentTagsUpdate(BaseModel):
    tag_names: List[str] = []


class ContentTagsResponse(BaseModel):
    content_type: str
    content_id: int
    tags: List[str]
