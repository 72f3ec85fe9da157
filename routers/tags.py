"""
Router for content tags.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, delete

from db_config import get_async_db
from core.security import get_current_admin_user
from core.text_utils import slugify
from models.models import User, Tag, ContentTag, ContentTypeEnum
from schemas.tag import TagCreate, TagUpdate, TagRead, ContentTagsUpdate, ContentTagsResponse
from schemas.user import MessageResponse
from services.content_service import ContentService

router = APIRouter(prefix="/api", tags=["Tags"])


async def _get_tag_or_404(db: AsyncSession, tag_id: int) -> Tag:
    result = await db.execute(select(Tag).where(Tag.id == tag_id))
    tag = result.scalar_one_or_none()
    if not tag:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tag not found")
    return tag


async def _ensure_unique(db: AsyncSession, name: str, slug: str, exclude_id: int = None) -> None:
    stmt = select(Tag.id).where(or_(Tag.name == name, Tag.slug == slug))
    if exclude_id is not None:
        stmt = stmt.where(Tag.id != exclude_id)
    if (await db.execute(stmt)).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Tag with name '{name}' already exists")


@router.get("/tags", response_model=List[TagRead])
async def list_tags(db: AsyncSession = Depends(get_async_db)):
    """All tags with the number of books and tutorials carrying them."""
    usage = func.count(ContentTag.tag_id)
    result = await db.execute(
        select(Tag, usage)
        .outerjoin(ContentTag, ContentTag.tag_id == Tag.id)
        .group_by(Tag.id)
        .order_by(Tag.name)
    )
    return [
        TagRead(id=tag.id, name=tag.name, slug=tag.slug, usage_count=count)
        for tag, count in result.all()
    ]


@router.post("/admin/tags", response_model=TagRead, status_code=status.HTTP_201_CREATED)
async def create_tag(
    tag_data: TagCreate,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    name = tag_data.name.strip()
    slug = slugify(name)
    if not slug:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Tag name must contain letters or digits")

    await _ensure_unique(db, name, slug)

    tag = Tag(name=name, slug=slug)
    db.add(tag)
    await db.commit()
    await db.refresh(tag)

    return TagRead.model_validate(tag)


@router.put("/admin/tags/{tag_id}", response_model=TagRead)
async def update_tag(
    tag_id: int,
    tag_update: TagUpdate,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    tag = await _get_tag_or_404(db, tag_id)
    if not tag_update.name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    name = tag_update.name.strip()
    slug = slugify(name)
    if not slug:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Tag name must contain letters or digits")
    await _ensure_unique(db, name, slug, exclude_id=tag_id)

    tag.name = name
    tag.slug = slug
    await db.commit()
    await db.refresh(tag)

    usage = (await db.execute(select(func.count()).select_from(ContentTag).where(ContentTag.tag_id == tag_id))).scalar()
    return TagRead(id=tag.id, name=tag.name, slug=tag.slug, usage_count=usage or 0)


@router.delete("/admin/tags/{tag_id}", response_model=MessageResponse)
async def delete_tag(
    tag_id: int,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Delete a tag; it is removed from every book and tutorial."""
    await _get_tag_or_404(db, tag_id)

    await db.execute(delete(ContentTag).where(ContentTag.tag_id == tag_id))
    await db.execute(delete(Tag).where(Tag.id == tag_id))
    await db.commit()

    return MessageResponse(message="Tag deleted successfully")


@router.put("/admin/tags/content/{content_type}/{content_id}", response_model=ContentTagsResponse)
async def set_content_tags(
    content_type: ContentTypeEnum,
    content_id: int,
    tags_update: ContentTagsUpdate,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Replace the tags of a book or tutorial, creating tags that do not exist yet."""
    service = ContentService(db)
    await service.ensure_content_exists(content_type, content_id)

    names = await service.set_content_tags(content_type, content_id, tags_update.tag_names)
    await db.commit()

    return ContentTagsResponse(content_type=content_type.value, content_id=content_id, tags=names)
