"""
Pydantic schemas for bookmarks and reading history.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from models.models import ContentTypeEnum


class ContentRef(BaseModel):
    content_type: ContentTypeEnum
    content_id: int = Field(..., gt=0)


class BookmarkRead(ContentRef):
    id: int
    title: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class BookmarkListResponse(BaseModel):
    bookmarks: List[BookmarkRead]


class ReadingProgressUpdate(ContentRef):
    progress: Optional[str] = Field(None, max_length=50)


class ReadingHistoryRead(ContentRef):
    id: int
    title: Optional[str] = None
    progress: Optional[str] = None
    last_accessed_at: datetime

    class Config:
        from_attributes = True


class ReadingHistoryListResponse(BaseModel):
    history: List[ReadingHistoryRead]
