"""
Category routes: public listing with content counters and admin management.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_

from core.security import get_current_admin_user
from core.logging import get_logger
from core.text_utils import slugify, utcnow
from db_config import get_async_db
from models.models import User, Category, Book, Tutorial, DownloadLog, ContentTypeEnum
from schemas.category import CategoryCreate, CategoryUpdate, CategoryRead, CategoryWithStats
from schemas.user import MessageResponse
from services.activity_service import ActivityService

router = APIRouter(prefix="/api", tags=["Categories"])

logger = get_logger("categories")


async def _category_stats(db: AsyncSession, categories: List[Category]) -> List[CategoryWithStats]:
    ids = [category.id for category in categories]
    if not ids:
        return []

    book_counts = dict((await db.execute(
        select(Book.category_id, func.count(Book.id)).where(Book.category_id.in_(ids)).group_by(Book.category_id)
    )).all())
    tutorial_counts = dict((await db.execute(
        select(Tutorial.category_id, func.count(Tutorial.id))
        .where(Tutorial.category_id.in_(ids))
        .group_by(Tutorial.category_id)
    )).all())
    download_counts = dict((await db.execute(
        select(Book.category_id, func.count(DownloadLog.id))
        .join(DownloadLog, (DownloadLog.content_id == Book.id) & (DownloadLog.content_type == ContentTypeEnum.book))
        .where(Book.category_id.in_(ids))
        .group_by(Book.category_id)
    )).all())

    return [
        CategoryWithStats(
            id=category.id,
            name=category.name,
            slug=category.slug,
            description=category.description,
            bookCount=book_counts.get(category.id, 0),
            tutorialCount=tutorial_counts.get(category.id, 0),
            totalDownloads=download_counts.get(category.id, 0),
        )
        for category in categories
    ]


async def _ensure_unique(db: AsyncSession, name: str, slug: str, exclude_id: int = None) -> None:
    stmt = select(Category.id).where(or_(Category.name == name, Category.slug == slug))
    if exclude_id is not None:
        stmt = stmt.where(Category.id != exclude_id)
    if (await db.execute(stmt)).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Category with this name or slug already exists")


async def _get_category_or_404(db: AsyncSession, category_id: int) -> Category:
    result = await db.execute(select(Category).where(Category.id == category_id))
    category = result.scalar_one_or_none()
    if not category:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return category


@router.get("/categories", response_model=List[CategoryWithStats])
async def list_categories(db: AsyncSession = Depends(get_async_db)):
    """All categories ordered by name, with book/tutorial/download counters."""
    result = await db.execute(select(Category).order_by(Category.name))
    return await _category_stats(db, result.scalars().all())


@router.get("/categories/{id_or_slug}", response_model=CategoryWithStats)
async def get_category(id_or_slug: str, db: AsyncSession = Depends(get_async_db)):
    """Look up a category by numeric id or by slug."""
    category = None
    if id_or_slug.isdigit():
        category = (await db.execute(select(Category).where(Category.id == int(id_or_slug)))).scalar_one_or_none()
    if category is None:
        # Slugs may be all digits, e.g. "2024"
        category = (await db.execute(select(Category).where(Category.slug == id_or_slug))).scalar_one_or_none()
    if not category:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return (await _category_stats(db, [category]))[0]


@router.post("/admin/categories", response_model=CategoryRead, status_code=status.HTTP_201_CREATED)
async def create_category(
    category_data: CategoryCreate,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    name = category_data.name.strip()
    slug = slugify(category_data.slug or name)
    if not name or not slug:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Category name is required")

    await _ensure_unique(db, name, slug)

    category = Category(name=name, slug=slug, description=category_data.description)
    db.add(category)
    ActivityService(db).log_activity(current_user, "admin_create_category", f"Created category {name}", request)
    await db.commit()
    await db.refresh(category)

    logger.info("Category created", category_id=category.id, slug=slug)
    return CategoryRead.model_validate(category)


@router.put("/admin/categories/{category_id}", response_model=CategoryRead)
async def update_category(
    category_id: int,
    category_update: CategoryUpdate,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    category = await _get_category_or_404(db, category_id)
    update_data = category_update.model_dump(exclude_unset=True)

    name = (update_data.get("name") or category.name).strip()
    if "slug" in update_data and update_data["slug"]:
        slug = slugify(update_data["slug"])
    elif "name" in update_data and update_data["name"]:
        slug = slugify(name)
    else:
        slug = category.slug
    if not name or not slug:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Category name is required")

    await _ensure_unique(db, name, slug, exclude_id=category_id)

    category.name = name
    category.slug = slug
    if "description" in update_data:
        category.description = update_data["description"]
    category.updated_at = utcnow()

    await db.commit()
    await db.refresh(category)
    return CategoryRead.model_validate(category)


@router.delete("/admin/categories/{category_id}", response_model=MessageResponse)
async def delete_category(
    category_id: int,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Delete a category; refused while books or tutorials still reference it."""
    category = await _get_category_or_404(db, category_id)

    books = (await db.execute(select(func.count(Book.id)).where(Book.category_id == category_id))).scalar()
    tutorials = (await db.execute(select(func.count(Tutorial.id)).where(Tutorial.category_id == category_id))).scalar()
    if books or tutorials:
        logger.warning("Refused to delete category in use", category_id=category_id, books=books, tutorials=tutorials)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete category: it is used by {books} book(s) and {tutorials} tutorial(s)"
        )

    await db.delete(category)
    ActivityService(db).log_activity(current_user, "admin_delete_category", f"Deleted category {category.name}", request)
    await db.commit()
    return MessageResponse(message="Category deleted successfully")
