"""
Pydantic schemas for thumbs up/down ratings.
"""
from typing import Literal, Optional
from pydantic import BaseModel, Field
from models.models import ContentTypeEnum


class VoteRequest(BaseModel):
    content_type: ContentTypeEnum
    content_id: int = Field(..., gt=0)
    vote: Literal["up", "down"]
    review: Optional[str] = Field(None, max_length=2000)


class VoteTally(BaseModel):
    """Authoritative counters the client reconciles its optimistic state against."""
    content_type: ContentTypeEnum
    content_id: int
    up_votes: int = 0
    down_votes: int = 0
    user_vote: Optional[int] = None


class VoteResponse(VoteTally):
    message: str
    action: Literal["created", "updated", "removed"]
