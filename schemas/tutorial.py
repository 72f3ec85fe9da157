"""
Pydantic schemas for tutorials.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from models.models import DifficultyEnum, TutorialFormatEnum


class TutorialCreate(BaseModel):
    # title / category_id are validated in the handler (400 on absence)
    title: Optional[str] = Field(None, max_length=255)
    category_id: Optional[int] = None
    description: Optional[str] = None
    creator: Optional[str] = Field(None, max_length=255)
    difficulty: DifficultyEnum = DifficultyEnum.Beginner
    content_type: TutorialFormatEnum = TutorialFormatEnum.Video
    content_url: Optional[str] = Field(None, max_length=500)
    embed_url: Optional[str] = Field(None, max_length=1000)
    file_path: Optional[str] = Field(None, max_length=255)
    duration_seconds: Optional[int] = Field(None, ge=0)
    iso_duration: Optional[str] = Field(None, max_length=50, description="YouTube API duration, e.g. PT12M30S")
    tags: List[str] = []


class TutorialUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    category_id: Optional[int] = None
    description: Optional[str] = None
    creator: Optional[str] = Field(None, max_length=255)
    difficulty: Optional[DifficultyEnum] = None
    content_type: Optional[TutorialFormatEnum] = None
    content_url: Optional[str] = Field(None, max_length=500)
    embed_url: Optional[str] = Field(None, max_length=1000)
    file_path: Optional[str] = Field(None, max_length=255)
    duration_seconds: Optional[int] = Field(None, ge=0)
    iso_duration: Optional[str] = Field(None, max_length=50, description="YouTube API duration, e.g. PT12M30S")
    tags: Optional[List[str]] = None


class TutorialRead(BaseModel):
    id: int
    title: str
    category_id: int
    category_name: Optional[str] = None
    description: Optional[str] = None
    creator: Optional[str] = None
    difficulty: DifficultyEnum
    content_type: TutorialFormatEnum
    content_url: Optional[str] = None
    embed_url: Optional[str] = None
    video_id: Optional[str] = None
    file_path: Optional[str] = None
    duration_seconds: Optional[int] = None
    duration: Optional[str] = None
    thumbnail: Optional[str] = None
    view_count: int = 0
    up_votes: int = 0
    down_votes: int = 0
    user_vote: Optional[int] = None
    tags: List[str] = []
    created_at: datetime
    updated_at: datetime


class TutorialListResponse(BaseModel):
    tutorials: List[TutorialRead]
    total: int
    skip: int
    limit: int


class ViewRecordResponse(BaseModel):
    success: bool
    view_count: int
