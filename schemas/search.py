"""
Pydantic schemas for catalog search.
"""
from typing import List
from pydantic import BaseModel
from schemas.book import BookRead
from schemas.tutorial import TutorialRead


class SearchResponse(BaseModel):
    query: str
    books: List[BookRead]
    tutorials: List[TutorialRead]
