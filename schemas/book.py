"""
Pydantic schemas for books.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from models.models import BookTypeEnum


class BookBase(BaseModel):
    description: Optional[str] = None
    isbn: Optional[str] = Field(None, max_length=20)
    book_type: BookTypeEnum = BookTypeEnum.file
    file_path: Optional[str] = Field(None, max_length=255)
    file_size: Optional[int] = Field(None, ge=0)
    file_type: Optional[str] = Field(None, max_length=100)
    external_link: Optional[str] = Field(None, max_length=500)
    purchase_link: Optional[str] = Field(None, max_length=500)
    price: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    cover_image_path: Optional[str] = Field(None, max_length=500)
    published_year: Optional[int] = Field(None, ge=0, le=9999)
    page_count: Optional[int] = Field(None, ge=0)


class BookCreate(BookBase):
    """
    Book creation payload.

    `title`, `author` and `category_id` are checked by the handler so that a
    missing value yields a 400 with a single readable message.
    """
    title: Optional[str] = Field(None, max_length=255)
    author: Optional[str] = Field(None, max_length=255)
    category_id: Optional[int] = None
    file_content: Optional[str] = Field(None, description="Base64 encoded file body")
    cover_image_base64: Optional[str] = None
    cover_image_type: Optional[str] = Field(None, max_length=100)
    tags: List[str] = []


class BookUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    author: Optional[str] = Field(None, min_length=1, max_length=255)
    category_id: Optional[int] = None
    description: Optional[str] = None
    isbn: Optional[str] = Field(None, max_length=20)
    book_type: Optional[BookTypeEnum] = None
    file_path: Optional[str] = Field(None, max_length=255)
    file_content: Optional[str] = None
    file_size: Optional[int] = Field(None, ge=0)
    file_type: Optional[str] = Field(None, max_length=100)
    external_link: Optional[str] = Field(None, max_length=500)
    purchase_link: Optional[str] = Field(None, max_length=500)
    price: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    cover_image_path: Optional[str] = Field(None, max_length=500)
    published_year: Optional[int] = Field(None, ge=0, le=9999)
    page_count: Optional[int] = Field(None, ge=0)
    tags: Optional[List[str]] = None


class BookRead(BookBase):
    id: int
    title: str
    author: str
    category_id: int
    category_name: Optional[str] = None
    has_file_content: bool = False
    thumbnail: str
    download_count: int = 0
    up_votes: int = 0
    down_votes: int = 0
    user_vote: Optional[int] = None
    comment_count: Optional[int] = None
    tags: List[str] = []
    created_at: datetime
    updated_at: datetime


class BookListResponse(BaseModel):
    books: List[BookRead]
    total: int
    skip: int
    limit: int


class BookCoverUpdate(BaseModel):
    cover_image_path: Optional[str] = Field(None, max_length=500)
    cover_image_base64: Optional[str] = None
    cover_image_type: Optional[str] = Field(None, max_length=100)


class BookCoverResponse(BaseModel):
    message: str
    cover_image_path: str


class RecommendationUpdate(BaseModel):
    tutorial_ids: List[int] = []
