"""
Catalog-wide search over books and tutorials.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, desc
from sqlalchemy.orm import selectinload, defer

from db_config import get_async_db
from core.security import get_optional_user
from models.models import User, Book, Tutorial
from schemas.book import BookRead
from schemas.search import SearchResponse
from schemas.tutorial import TutorialRead
from services.activity_service import ActivityService
from services.content_service import ContentService

router = APIRouter(prefix="/api", tags=["Search"])


@router.get("/search", response_model=SearchResponse)
async def search_catalog(
    q: str = Query(..., min_length=1, max_length=255),
    limit: int = Query(20, ge=1, le=100),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db)
):
    """
    Match books (title, author, description) and tutorials (title, creator,
    description); the query is recorded in the search history.
    """
    query = q.strip()
    pattern = f"%{query}%"

    book_result = await db.execute(
        select(Book)
        .options(defer(Book.file_content), defer(Book.thumbnail_content), selectinload(Book.category))
        .where(or_(Book.title.ilike(pattern), Book.author.ilike(pattern), Book.description.ilike(pattern)))
        .order_by(desc(Book.created_at), desc(Book.id))
        .limit(limit)
    )
    tutorial_result = await db.execute(
        select(Tutorial)
        .options(selectinload(Tutorial.category))
        .where(or_(Tutorial.title.ilike(pattern), Tutorial.creator.ilike(pattern), Tutorial.description.ilike(pattern)))
        .order_by(desc(Tutorial.created_at), desc(Tutorial.id))
        .limit(limit)
    )

    service = ContentService(db)
    books = await service.serialize_books(book_result.scalars().all(), current_user)
    tutorials = await service.serialize_tutorials(tutorial_result.scalars().all(), current_user)

    ActivityService(db).log_search(current_user, query, len(books) + len(tutorials))
    await db.commit()

    return SearchResponse(
        query=query,
        books=[BookRead(**book) for book in books],
        tutorials=[TutorialRead(**tutorial) for tutorial in tutorials]
    )
