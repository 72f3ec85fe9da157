"""
Tutorial routes: listing, detail, view tracking and admin management.
"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, delete, desc
from sqlalchemy.orm import selectinload

from core.security import get_current_admin_user, get_optional_user
from core.logging import get_logger
from core.text_utils import utcnow
from core.youtube import extract_youtube_id, build_embed_url, parse_iso8601_duration
from db_config import get_async_db
from models.models import User, Tutorial, Category, DifficultyEnum, ContentTypeEnum, ViewLog
from schemas.tutorial import (
    TutorialCreate, TutorialUpdate, TutorialRead, TutorialListResponse, ViewRecordResponse
)
from schemas.user import MessageResponse
from services.activity_service import ActivityService, client_ip
from services.content_service import ContentService

router = APIRouter(prefix="/api", tags=["Tutorials"])

logger = get_logger("tutorials")


def _apply_video_fields(tutorial: Tutorial, rebuild_embed: bool = False) -> None:
    """
    Derive video id and embed URL from a YouTube content URL.

    With `rebuild_embed` the stored embed URL is discarded first, so a new
    content URL never keeps playing the previous video.
    """
    if rebuild_embed:
        tutorial.embed_url = None
    video_id = extract_youtube_id(tutorial.content_url) or extract_youtube_id(tutorial.embed_url)
    tutorial.video_id = video_id
    if video_id and not tutorial.embed_url:
        tutorial.embed_url = build_embed_url(video_id)


def _resolve_duration(duration_seconds: Optional[int], iso_duration: Optional[str]) -> Optional[int]:
    """Seconds win; otherwise parse a YouTube API duration such as PT12M30S."""
    if duration_seconds is not None or not iso_duration:
        return duration_seconds
    seconds = parse_iso8601_duration(iso_duration)
    if not seconds:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid ISO-8601 duration")
    return seconds


async def _ensure_category(db: AsyncSession, category_id: int) -> None:
    if (await db.execute(select(Category.id).where(Category.id == category_id))).first() is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Category not found")


async def _tutorial_payload(db: AsyncSession, tutorial_id: int, user: Optional[User] = None) -> TutorialRead:
    result = await db.execute(
        select(Tutorial)
        .options(selectinload(Tutorial.category))
        .where(Tutorial.id == tutorial_id)
        .execution_options(populate_existing=True)
    )
    tutorial = result.scalar_one_or_none()
    if not tutorial:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tutorial not found")
    return TutorialRead(**(await ContentService(db).serialize_tutorials([tutorial], user))[0])


async def _list_tutorials(db: AsyncSession, user: Optional[User], conditions: list, skip: int, limit: int) -> TutorialListResponse:
    total = (await db.execute(select(func.count(Tutorial.id)).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(Tutorial)
        .options(selectinload(Tutorial.category))
        .where(*conditions)
        .order_by(desc(Tutorial.created_at), desc(Tutorial.id))
        .offset(skip)
        .limit(limit)
    )
    payloads = await ContentService(db).serialize_tutorials(result.scalars().all(), user)
    return TutorialListResponse(
        tutorials=[TutorialRead(**payload) for payload in payloads],
        total=total,
        skip=skip,
        limit=limit
    )


@router.get("/tutorials", response_model=TutorialListResponse)
async def list_tutorials(
    category_id: Optional[int] = Query(None),
    difficulty: Optional[DifficultyEnum] = Query(None),
    search: Optional[str] = Query(None, max_length=255),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db)
):
    """List tutorials, newest first, with view and vote counters."""
    conditions = []
    if category_id is not None:
        conditions.append(Tutorial.category_id == category_id)
    if difficulty is not None:
        conditions.append(Tutorial.difficulty == difficulty)

    search = (search or "").strip()
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(
            Tutorial.title.ilike(pattern),
            Tutorial.creator.ilike(pattern),
            Tutorial.description.ilike(pattern)
        ))

    response = await _list_tutorials(db, current_user, conditions, skip, limit)
    if search:
        ActivityService(db).log_search(current_user, search, response.total)
        await db.commit()
    return response


@router.get("/tutorials/{tutorial_id}", response_model=TutorialRead)
async def get_tutorial(
    tutorial_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db)
):
    return await _tutorial_payload(db, tutorial_id, current_user)


@router.post("/tutorials/{tutorial_id}/views", response_model=ViewRecordResponse)
async def record_tutorial_view(
    tutorial_id: int,
    request: Request,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db)
):
    """
    Record one view of a tutorial.

    The player calls this after ten seconds of playback; every call is logged,
    de-duplication is left to the client.
    """
    if (await db.execute(select(Tutorial.id).where(Tutorial.id == tutorial_id))).first() is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tutorial not found")

    db.add(ViewLog(
        user_id=current_user.id if current_user else None,
        content_id=tutorial_id,
        content_type=ContentTypeEnum.tutorial,
        ip_address=client_ip(request),
    ))
    await db.commit()

    view_count = (await ContentService(db).view_counts(ContentTypeEnum.tutorial, [tutorial_id])).get(tutorial_id, 0)
    return ViewRecordResponse(success=True, view_count=view_count)


# --- Admin management ---

@router.get("/admin/tutorials", response_model=TutorialListResponse)
async def admin_list_tutorials(
    skip: int = Query(0, ge=0),
    limit: int = Query(500, ge=1, le=5000),
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    return await _list_tutorials(db, current_user, [], skip, limit)


@router.post("/admin/tutorials", response_model=TutorialRead, status_code=status.HTTP_201_CREATED)
async def create_tutorial(
    tutorial_data: TutorialCreate,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """
    Publish a tutorial (admin only).

    - **title**, **category_id**: required
    - **content_url**: a YouTube URL fills in `video_id` and `embed_url`
    """
    if not (tutorial_data.title and tutorial_data.title.strip()) or tutorial_data.category_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title and category are required")

    await _ensure_category(db, tutorial_data.category_id)

    tutorial = Tutorial(
        title=tutorial_data.title.strip(),
        category_id=tutorial_data.category_id,
        description=tutorial_data.description,
        creator=tutorial_data.creator,
        difficulty=tutorial_data.difficulty,
        content_format=tutorial_data.content_type,
        content_url=tutorial_data.content_url,
        embed_url=tutorial_data.embed_url,
        file_path=tutorial_data.file_path,
        duration_seconds=_resolve_duration(tutorial_data.duration_seconds, tutorial_data.iso_duration),
    )
    _apply_video_fields(tutorial)
    db.add(tutorial)
    await db.flush()

    if tutorial_data.tags:
        await ContentService(db).set_content_tags(ContentTypeEnum.tutorial, tutorial.id, tutorial_data.tags)

    ActivityService(db).log_activity(
        current_user, "admin_create_tutorial", f"Created tutorial {tutorial.id}: {tutorial.title}", request
    )
    await db.commit()

    logger.info("Tutorial created", tutorial_id=tutorial.id, video_id=tutorial.video_id, admin_id=current_user.id)
    return await _tutorial_payload(db, tutorial.id, current_user)


@router.put("/admin/tutorials/{tutorial_id}", response_model=TutorialRead)
async def update_tutorial(
    tutorial_id: int,
    tutorial_update: TutorialUpdate,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    update_data = tutorial_update.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    result = await db.execute(select(Tutorial).where(Tutorial.id == tutorial_id))
    tutorial = result.scalar_one_or_none()
    if not tutorial:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tutorial not found")

    for required in ("title", "category_id", "difficulty", "content_type"):
        if required in update_data and update_data[required] is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{required} cannot be empty")

    if "category_id" in update_data:
        await _ensure_category(db, update_data["category_id"])

    tags = update_data.pop("tags", None)
    if "content_type" in update_data:
        update_data["content_format"] = update_data.pop("content_type")
    iso_duration = update_data.pop("iso_duration", None)
    if iso_duration and "duration_seconds" not in update_data:
        update_data["duration_seconds"] = _resolve_duration(None, iso_duration)

    for field, value in update_data.items():
        setattr(tutorial, field, value)
    if "content_url" in update_data or "embed_url" in update_data:
        _apply_video_fields(
            tutorial, rebuild_embed="content_url" in update_data and "embed_url" not in update_data
        )

    if tags is not None:
        await ContentService(db).set_content_tags(ContentTypeEnum.tutorial, tutorial.id, tags)

    tutorial.updated_at = utcnow()
    ActivityService(db).log_activity(
        current_user, "admin_update_tutorial", f"Updated tutorial {tutorial.id}: {tutorial.title}", request
    )
    await db.commit()

    return await _tutorial_payload(db, tutorial_id, current_user)


@router.delete("/admin/tutorials/{tutorial_id}", response_model=MessageResponse)
async def delete_tutorial(
    tutorial_id: int,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    result = await db.execute(select(Tutorial.id, Tutorial.title).where(Tutorial.id == tutorial_id))
    row = result.first()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tutorial not found")

    await ContentService(db).purge_content_references(ContentTypeEnum.tutorial, tutorial_id)
    await db.execute(delete(Tutorial).where(Tutorial.id == tutorial_id))
    ActivityService(db).log_activity(
        current_user, "admin_delete_tutorial", f"Deleted tutorial {tutorial_id}: {row.title}", request
    )
    await db.commit()

    logger.info("Tutorial deleted", tutorial_id=tutorial_id, admin_id=current_user.id)
    return MessageResponse(message="Tutorial deleted successfully")
