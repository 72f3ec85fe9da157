"""
Pydantic schemas for threaded comments.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from models.models import ContentTypeEnum


class CommentCreate(BaseModel):
    content_type: ContentTypeEnum
    content_id: int = Field(..., gt=0)
    comment_text: str = Field(..., min_length=1, max_length=5000)
    parent_comment_id: Optional[int] = None


class CommentUpdate(BaseModel):
    comment_text: str = Field(..., min_length=1, max_length=5000)


class CommentRead(BaseModel):
    id: int
    user_id: int
    content_type: ContentTypeEnum
    content_id: int
    parent_comment_id: Optional[int] = None
    comment_text: str
    created_at: datetime
    updated_at: datetime

    # Author details (populated by router)
    author_username: Optional[str] = None
    author_display_name: Optional[str] = None
    author_profile_image: Optional[str] = None

    reply_count: int = 0
    replies: List["CommentRead"] = []

    class Config:
        from_attributes = True


CommentRead.model_rebuild()


class CommentThreadResponse(BaseModel):
    comments: List[CommentRead]
    total_count: int


class CommentCreateResponse(BaseModel):
    message: str
    comment: CommentRead
