"""
Router for reader interactions: thumbs ratings, bookmarks, reading history and comments.
"""
from collections import defaultdict
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlalchemy import select, delete

from db_config import get_async_db
from core.security import get_current_active_user, get_optional_user, is_staff
from core.logging import get_logger
from core.rate_limiting import check_rate_limit, security_validator
from core.text_utils import utcnow
from models.models import User, Rating, Bookmark, ReadingHistory, Comment, ContentTypeEnum
from schemas.rating import VoteRequest, VoteTally, VoteResponse
from schemas.bookmark import (
    ContentRef, BookmarkRead, BookmarkListResponse,
    ReadingProgressUpdate, ReadingHistoryRead, ReadingHistoryListResponse
)
from schemas.comment import (
    CommentCreate, CommentUpdate, CommentRead, CommentThreadResponse, CommentCreateResponse
)
from schemas.user import MessageResponse
from services.activity_service import ActivityService
from services.content_service import ContentService

router = APIRouter(prefix="/api", tags=["Interactions"])

logger = get_logger("interactions")

VOTE_VALUES = {"up": 1, "down": -1}


async def _tally(db: AsyncSession, user: Optional[User], content_type: ContentTypeEnum, content_id: int) -> VoteTally:
    service = ContentService(db)
    up_votes, down_votes = (await service.vote_tallies(content_type, [content_id])).get(content_id, (0, 0))
    user_vote = (await service.user_votes(user, content_type, [content_id])).get(content_id)
    return VoteTally(
        content_type=content_type,
        content_id=content_id,
        up_votes=up_votes,
        down_votes=down_votes,
        user_vote=user_vote
    )


# ============ Ratings ============

@router.post("/ratings", response_model=VoteResponse)
async def cast_vote(
    vote_data: VoteRequest,
    request: Request,
    response: Response,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    """
    Cast a thumbs up/down vote.

    Repeating the current vote removes it, the opposite vote replaces it.
    The response carries the authoritative tallies and the caller's vote.
    """
    check_rate_limit(request, "vote", current_user.id, current_user.role.value)
    if vote_data.review:
        _validate_text(vote_data.review)
    await ContentService(db).ensure_content_exists(vote_data.content_type, vote_data.content_id)

    value = VOTE_VALUES[vote_data.vote]
    result = await db.execute(select(Rating).where(
        Rating.user_id == current_user.id,
        Rating.content_type == vote_data.content_type,
        Rating.content_id == vote_data.content_id
    ))
    existing = result.scalar_one_or_none()

    if existing and existing.vote == value:
        await db.delete(existing)
        action, message = "removed", "Vote removed"
    elif existing:
        existing.vote = value
        if vote_data.review is not None:
            existing.review = vote_data.review
        existing.updated_at = utcnow()
        action, message = "updated", "Vote updated"
    else:
        db.add(Rating(
            user_id=current_user.id,
            content_type=vote_data.content_type,
            content_id=vote_data.content_id,
            vote=value,
            review=vote_data.review
        ))
        action, message = "created", "Vote recorded"

    ActivityService(db).log_activity(
        current_user, "vote",
        f"{action} {vote_data.vote} vote on {vote_data.content_type.value} {vote_data.content_id}", request
    )
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent identical submission already inserted the row
        await db.rollback()
        await db.refresh(current_user)
        logger.warning("Duplicate vote submission", user_id=current_user.id, content_id=vote_data.content_id)
        action, message = "updated", "Vote already recorded"

    if action == "created":
        response.status_code = status.HTTP_201_CREATED

    tally = await _tally(db, current_user, vote_data.content_type, vote_data.content_id)
    return VoteResponse(**tally.model_dump(), message=message, action=action)


@router.get("/ratings", response_model=VoteTally)
async def get_vote_tally(
    content_type: ContentTypeEnum = Query(...),
    content_id: int = Query(..., gt=0),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db)
):
    await ContentService(db).ensure_content_exists(content_type, content_id)
    return await _tally(db, current_user, content_type, content_id)


# ============ Bookmarks ============

@router.get("/bookmarks", response_model=BookmarkListResponse)
async def list_bookmarks(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    result = await db.execute(
        select(Bookmark).where(Bookmark.user_id == current_user.id).order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
    )
    bookmarks = result.scalars().all()
    titles = await ContentService(db).get_titles((b.content_type, b.content_id) for b in bookmarks)

    return BookmarkListResponse(bookmarks=[
        BookmarkRead.model_validate(bookmark).model_copy(
            update={"title": titles.get((bookmark.content_type, bookmark.content_id))}
        )
        for bookmark in bookmarks
    ])


@router.post("/bookmarks", response_model=BookmarkRead)
async def add_bookmark(
    bookmark_data: ContentRef,
    request: Request,
    response: Response,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Bookmark a book or tutorial; bookmarking twice returns the existing row."""
    content = await ContentService(db).ensure_content_exists(bookmark_data.content_type, bookmark_data.content_id)

    result = await db.execute(select(Bookmark).where(
        Bookmark.user_id == current_user.id,
        Bookmark.content_type == bookmark_data.content_type,
        Bookmark.content_id == bookmark_data.content_id
    ))
    bookmark = result.scalar_one_or_none()

    if bookmark is None:
        bookmark = Bookmark(
            user_id=current_user.id,
            content_type=bookmark_data.content_type,
            content_id=bookmark_data.content_id
        )
        db.add(bookmark)
        ActivityService(db).log_activity(
            current_user, "bookmark", f"Bookmarked {bookmark_data.content_type.value} {bookmark_data.content_id}", request
        )
        await db.commit()
        await db.refresh(bookmark)
        response.status_code = status.HTTP_201_CREATED

    return BookmarkRead.model_validate(bookmark).model_copy(update={"title": content.title})


@router.delete("/bookmarks/{content_type}/{content_id}", response_model=MessageResponse)
async def remove_bookmark(
    content_type: ContentTypeEnum,
    content_id: int,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    result = await db.execute(delete(Bookmark).where(
        Bookmark.user_id == current_user.id,
        Bookmark.content_type == content_type,
        Bookmark.content_id == content_id
    ))
    if result.rowcount == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bookmark not found")

    await db.commit()
    return MessageResponse(message="Bookmark removed")


# ============ Reading history ============

@router.get("/reading-history", response_model=ReadingHistoryListResponse)
async def list_reading_history(
    limit: int = Query(50, ge=1, le=500),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    result = await db.execute(
        select(ReadingHistory)
        .where(ReadingHistory.user_id == current_user.id)
        .order_by(ReadingHistory.last_accessed_at.desc(), ReadingHistory.id.desc())
        .limit(limit)
    )
    entries = result.scalars().all()
    titles = await ContentService(db).get_titles((e.content_type, e.content_id) for e in entries)

    return ReadingHistoryListResponse(history=[
        ReadingHistoryRead.model_validate(entry).model_copy(
            update={"title": titles.get((entry.content_type, entry.content_id))}
        )
        for entry in entries
    ])


@router.put("/reading-history", response_model=ReadingHistoryRead)
async def update_reading_progress(
    progress_data: ReadingProgressUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Record where the caller is in a book or tutorial (one row per item)."""
    content = await ContentService(db).ensure_content_exists(progress_data.content_type, progress_data.content_id)

    result = await db.execute(select(ReadingHistory).where(
        ReadingHistory.user_id == current_user.id,
        ReadingHistory.content_type == progress_data.content_type,
        ReadingHistory.content_id == progress_data.content_id
    ))
    entry = result.scalar_one_or_none()

    if entry is None:
        entry = ReadingHistory(
            user_id=current_user.id,
            content_type=progress_data.content_type,
            content_id=progress_data.content_id
        )
        db.add(entry)
    if progress_data.progress is not None:
        entry.progress = progress_data.progress
    entry.last_accessed_at = utcnow()

    await db.commit()
    await db.refresh(entry)
    return ReadingHistoryRead.model_validate(entry).model_copy(update={"title": content.title})


# ============ Comments ============

def _comment_to_read(comment: Comment, children: Dict[Optional[int], List[Comment]]) -> CommentRead:
    """Convert a comment and its reply subtree, with author details."""
    replies = [_comment_to_read(reply, children) for reply in children.get(comment.id, [])]
    return CommentRead.model_validate(comment).model_copy(update={
        "author_username": comment.author.username if comment.author else None,
        "author_display_name": comment.author.display_name if comment.author else None,
        "author_profile_image": comment.author.profile_image if comment.author else None,
        "reply_count": len(replies),
        "replies": replies,
    })


async def _load_comment(db: AsyncSession, comment_id: int) -> Comment:
    result = await db.execute(
        select(Comment)
        .options(selectinload(Comment.author))
        .where(Comment.id == comment_id)
        .execution_options(populate_existing=True)
    )
    comment = result.scalar_one_or_none()
    if not comment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    return comment


def _ensure_can_modify(comment: Comment, user: User) -> None:
    if comment.user_id != user.id and not is_staff(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to modify this comment")


def _validate_text(text: str) -> None:
    valid, message = security_validator.validate_user_input(text)
    if not valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


@router.get("/comments", response_model=CommentThreadResponse)
async def get_comments(
    content_type: ContentTypeEnum = Query(...),
    content_id: int = Query(..., gt=0),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_async_db)
):
    """
    Threaded comments for a book or tutorial.

    Top-level comments are newest first; replies under each are oldest first.
    `total_count` counts every comment on the item, replies included.
    """
    await ContentService(db).ensure_content_exists(content_type, content_id)

    result = await db.execute(
        select(Comment)
        .options(selectinload(Comment.author))
        .where(Comment.content_type == content_type, Comment.content_id == content_id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    )
    comments = result.scalars().all()

    children = defaultdict(list)
    for comment in comments:
        children[comment.parent_comment_id].append(comment)

    top_level = list(reversed(children.get(None, [])))[skip:skip + limit]
    return CommentThreadResponse(
        comments=[_comment_to_read(comment, children) for comment in top_level],
        total_count=len(comments)
    )


@router.post("/comments", response_model=CommentCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    comment_data: CommentCreate,
    request: Request,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Comment on content, or reply to a comment on the same content."""
    check_rate_limit(request, "comment", current_user.id, current_user.role.value)
    _validate_text(comment_data.comment_text)
    await ContentService(db).ensure_content_exists(comment_data.content_type, comment_data.content_id)

    if comment_data.parent_comment_id:
        parent_result = await db.execute(select(Comment.id).where(
            Comment.id == comment_data.parent_comment_id,
            Comment.content_type == comment_data.content_type,
            Comment.content_id == comment_data.content_id
        ))
        if parent_result.first() is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Parent comment not found")

    new_comment = Comment(
        user_id=current_user.id,
        content_type=comment_data.content_type,
        content_id=comment_data.content_id,
        comment_text=comment_data.comment_text.strip(),
        parent_comment_id=comment_data.parent_comment_id
    )
    db.add(new_comment)
    ActivityService(db).log_activity(
        current_user, "comment",
        f"Commented on {comment_data.content_type.value} {comment_data.content_id}", request
    )
    await db.commit()

    comment = await _load_comment(db, new_comment.id)
    return CommentCreateResponse(message="Comment created successfully", comment=_comment_to_read(comment, {}))


@router.put("/comments/{comment_id}", response_model=CommentRead)
async def update_comment(
    comment_id: int,
    comment_update: CommentUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    comment = await _load_comment(db, comment_id)
    _ensure_can_modify(comment, current_user)
    _validate_text(comment_update.comment_text)

    comment.comment_text = comment_update.comment_text.strip()
    comment.updated_at = utcnow()
    await db.commit()

    return _comment_to_read(await _load_comment(db, comment_id), {})


@router.delete("/comments/{comment_id}", response_model=MessageResponse)
async def delete_comment(
    comment_id: int,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Delete a comment and its replies (author, moderator or admin)."""
    comment = await _load_comment(db, comment_id)
    _ensure_can_modify(comment, current_user)

    await db.execute(delete(Comment).where(Comment.id == comment_id))
    await db.commit()

    logger.info("Comment deleted", comment_id=comment_id, user_id=current_user.id)
    return MessageResponse(message="Comment deleted successfully")
