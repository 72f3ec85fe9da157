"""
Book routes: catalog listing, detail, downloads, thumbnails and admin management.
"""
import hashlib
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import FileResponse, RedirectResponse, Response
from starlette.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, delete, desc, asc
from sqlalchemy.orm import selectinload, defer

from core.security import get_current_active_user, get_current_admin_user, get_optional_user
from core.logging import get_logger
from core.file_utils import (
    decode_base64_payload, check_base64_length, validate_file_size, save_upload_bytes,
    resolve_upload_path, delete_file, MIME_EXTENSIONS, UPLOADS_URL_PREFIX
)
from core.text_utils import utcnow
from core.thumbnails import (
    ThumbnailError, THUMBNAIL_MIME, resize_image, render_pdf_thumbnail, pdf_too_large
)
from db_config import get_async_db
from models.models import (
    User, Book, Tutorial, Category, BookTypeEnum, ContentTypeEnum, DownloadLog,
    BookTutorialRecommendation
)
from schemas.book import (
    BookCreate, BookUpdate, BookRead, BookListResponse, BookCoverUpdate, BookCoverResponse,
    RecommendationUpdate
)
from schemas.tutorial import TutorialRead
from schemas.user import MessageResponse
from services.activity_service import ActivityService, client_ip
from services.content_service import ContentService

router = APIRouter(prefix="/api", tags=["Books"])

logger = get_logger("books")

THUMBNAIL_CACHE_SECONDS = 86400


def _listing_query():
    """Book select that never pulls the blob columns."""
    return select(Book).options(
        defer(Book.file_content),
        defer(Book.thumbnail_content),
        selectinload(Book.category)
    )


async def _load_book(db: AsyncSession, book_id: int) -> Book:
    result = await db.execute(
        _listing_query().where(Book.id == book_id).execution_options(populate_existing=True)
    )
    book = result.scalar_one_or_none()
    if not book:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    return book


async def _ensure_category(db: AsyncSession, category_id: int) -> None:
    if (await db.execute(select(Category.id).where(Category.id == category_id))).first() is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Category not found")


def _decode_or_400(payload: str):
    check_base64_length(payload)
    try:
        return decode_base64_payload(payload)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def _apply_cover(book: Book, cover_base64: str, cover_type: Optional[str]) -> str:
    """
    Store a base64 cover under /uploads and a 300x400 PNG of it as the thumbnail blob.

    Covers Pillow cannot read (SVG, for one) are kept as-is in the blob.
    """
    content, data_mime = _decode_or_400(cover_base64)
    validate_file_size(len(content))
    mime_type = cover_type or data_mime or "image/png"
    web_path = save_upload_bytes(content, "cover" + MIME_EXTENSIONS.get(mime_type, ".png"), mime_type)

    try:
        book.thumbnail_content = resize_image(content)
        book.thumbnail_mime = THUMBNAIL_MIME
    except ThumbnailError as e:
        logger.warning("Storing cover without resizing", mime_type=mime_type, error=str(e))
        book.thumbnail_content = content
        book.thumbnail_mime = mime_type

    book.cover_image_path = web_path
    return web_path


async def _release_uploads(db: AsyncSession, web_paths) -> None:
    """Delete /uploads files that no book or tutorial references any more."""
    for web_path in set(filter(None, web_paths)):
        if not web_path.startswith(UPLOADS_URL_PREFIX):
            continue
        # Identical uploads share one file
        book_refs = (await db.execute(
            select(func.count(Book.id)).where(or_(Book.file_path == web_path, Book.cover_image_path == web_path))
        )).scalar()
        tutorial_refs = (await db.execute(
            select(func.count(Tutorial.id)).where(Tutorial.file_path == web_path)
        )).scalar()
        if not (book_refs or tutorial_refs) and delete_file(web_path):
            logger.info("Removed unused upload", path=web_path)


def _thumbnail_response(content: bytes, mime_type: str, request: Request) -> Response:
    etag = hashlib.md5(content).hexdigest()
    headers = {
        "ETag": f'"{etag}"',
        "Cache-Control": f"public, max-age={THUMBNAIL_CACHE_SECONDS}",
    }
    if request.headers.get("if-none-match", "").replace("W/", "").strip('"') == etag:
        return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers=headers)
    return Response(content=content, media_type=mime_type, headers=headers)


def _apply_file_content(book: Book, file_base64: str, file_type: Optional[str]) -> None:
    content, data_mime = _decode_or_400(file_base64)
    validate_file_size(len(content))
    book.file_content = content
    book.file_size = len(content)
    book.file_type = file_type or data_mime or book.file_type or "application/octet-stream"


def _check_type_requirements(book_type: BookTypeEnum, file_path: Optional[str], has_content: bool,
                             external_link: Optional[str], purchase_link: Optional[str]) -> None:
    if book_type == BookTypeEnum.file and not (file_path or has_content):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File path or file content is required for file books")
    if book_type == BookTypeEnum.link and not external_link:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="External link is required for link books")
    if book_type == BookTypeEnum.purchase and not purchase_link:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Purchase link is required for purchase books")


async def _book_payload(db: AsyncSession, book_id: int, user: Optional[User] = None) -> BookRead:
    book = await _load_book(db, book_id)
    payload = (await ContentService(db).serialize_books([book], user, include_comment_count=True))[0]
    return BookRead(**payload)


# --- Public catalog ---

@router.get("/books", response_model=BookListResponse)
async def list_books(
    category_id: Optional[int] = Query(None),
    category: Optional[str] = Query(None, description="Category slug"),
    search: Optional[str] = Query(None, max_length=255),
    book_type: Optional[BookTypeEnum] = Query(None),
    exclude: Optional[int] = Query(None, description="Book id to leave out (related-books lists)"),
    sort: str = Query("newest", pattern="^(newest|oldest|title)$"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db)
):
    """
    List books, newest first by default.

    Each item carries download and vote counters plus the caller's own vote
    when a bearer token is sent. Searches are recorded in the search history.
    """
    conditions = []
    if category_id is not None:
        conditions.append(Book.category_id == category_id)
    if category:
        conditions.append(Book.category_id.in_(select(Category.id).where(Category.slug == category)))
    if book_type is not None:
        conditions.append(Book.book_type == book_type)
    if exclude is not None:
        conditions.append(Book.id != exclude)

    search = (search or "").strip()
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(
            Book.title.ilike(pattern),
            Book.author.ilike(pattern),
            Book.description.ilike(pattern)
        ))

    total = (await db.execute(select(func.count(Book.id)).where(*conditions))).scalar() or 0

    ordering = {
        "newest": (desc(Book.created_at), desc(Book.id)),
        "oldest": (asc(Book.created_at), asc(Book.id)),
        "title": (asc(Book.title), asc(Book.id)),
    }[sort]
    result = await db.execute(_listing_query().where(*conditions).order_by(*ordering).offset(skip).limit(limit))
    books = result.scalars().all()

    payloads = await ContentService(db).serialize_books(books, current_user)

    if search:
        ActivityService(db).log_search(current_user, search, total)
        await db.commit()

    return BookListResponse(books=[BookRead(**payload) for payload in payloads], total=total, skip=skip, limit=limit)


@router.get("/books/{book_id}", response_model=BookRead)
async def get_book(
    book_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db)
):
    return await _book_payload(db, book_id, current_user)


@router.get("/books/{book_id}/download")
async def download_book(
    book_id: int,
    request: Request,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    """
    Serve a book's file and record the download.

    Local uploads are streamed from disk, then stored file content is sent,
    and link books redirect to their external link.
    """
    result = await db.execute(select(Book).where(Book.id == book_id))
    book = result.scalar_one_or_none()
    if not book:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")

    db.add(DownloadLog(
        user_id=current_user.id,
        content_id=book.id,
        content_type=ContentTypeEnum.book,
        ip_address=client_ip(request),
    ))
    ActivityService(db).log_activity(current_user, "download", f"Downloaded book {book.id}: {book.title}", request)
    await db.commit()

    logger.info("Book download", book_id=book.id, user_id=current_user.id)

    if book.file_path and book.file_path.startswith("/uploads/"):
        disk_path = resolve_upload_path(book.file_path)
        if disk_path is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found on disk")
        return FileResponse(
            disk_path,
            media_type=book.file_type or "application/octet-stream",
            filename=f"{book.title}{disk_path.suffix}"
        )

    if book.file_content:
        filename = (book.file_path or book.title or "download").replace('"', "")
        return Response(
            content=book.file_content,
            media_type=book.file_type or "application/octet-stream",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'}
        )

    if book.external_link:
        return RedirectResponse(book.external_link, status_code=status.HTTP_302_FOUND)

    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File content not found")


@router.get("/books/{book_id}/thumbnail")
async def get_book_thumbnail(book_id: int, request: Request, db: AsyncSession = Depends(get_async_db)):
    """
    Serve the cover image of a book.

    Order: local cover file, remote cover URL (redirect), stored thumbnail blob,
    then a render of the first page of a PDF book (uploaded file or stored
    content). A 404 tells the client to fall back to its placeholder.
    """
    result = await db.execute(
        select(
            Book.cover_image_path, Book.thumbnail_content, Book.thumbnail_mime,
            Book.file_path, Book.file_type, Book.file_size
        ).where(Book.id == book_id)
    )
    row = result.first()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")

    cover = row.cover_image_path or ""
    if cover.startswith("/"):
        disk_path = resolve_upload_path(cover)
        if disk_path is not None:
            return FileResponse(disk_path)
    elif cover.startswith(("http://", "https://")):
        return RedirectResponse(cover, status_code=status.HTTP_302_FOUND)

    if row.thumbnail_content:
        return _thumbnail_response(row.thumbnail_content, row.thumbnail_mime or "image/png", request)

    if row.file_type != "application/pdf":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Thumbnail not found")

    if row.file_path and row.file_path.startswith(UPLOADS_URL_PREFIX):
        disk_path = resolve_upload_path(row.file_path)
        if disk_path is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="PDF file not found on disk")
        size, source = disk_path.stat().st_size, disk_path
    else:
        source = (await db.execute(select(Book.file_content).where(Book.id == book_id))).scalar()
        if not source:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Thumbnail not found")
        size = len(source)

    if pdf_too_large(size):
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="PDF file too large for thumbnail generation"
        )

    try:
        thumbnail = await run_in_threadpool(render_pdf_thumbnail, source)
    except ThumbnailError as e:
        logger.error("PDF thumbnail failed", book_id=book_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to convert PDF to thumbnail"
        )
    return _thumbnail_response(thumbnail, THUMBNAIL_MIME, request)


@router.patch("/books/{book_id}", response_model=BookCoverResponse)
async def update_book_cover(
    book_id: int,
    cover_update: BookCoverUpdate,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Replace a book's cover by path or with a base64 image (admin only)."""
    result = await db.execute(select(Book).where(Book.id == book_id))
    book = result.scalar_one_or_none()
    if not book:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")

    previous_cover = book.cover_image_path
    if cover_update.cover_image_base64:
        cover_path = _apply_cover(book, cover_update.cover_image_base64, cover_update.cover_image_type)
        message = "Cover image and thumbnail updated"
    elif cover_update.cover_image_path:
        book.cover_image_path = cover_path = cover_update.cover_image_path
        message = "Book thumbnail updated successfully"
    else:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cover image path is required")

    book.updated_at = utcnow()
    await db.commit()

    if previous_cover != cover_path:
        await _release_uploads(db, [previous_cover])
    return BookCoverResponse(message=message, cover_image_path=cover_path)


@router.get("/books/{book_id}/recommended-tutorials", response_model=List[TutorialRead])
async def get_recommended_tutorials(
    book_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db)
):
    if (await db.execute(select(Book.id).where(Book.id == book_id))).first() is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")

    result = await db.execute(
        select(Tutorial)
        .join(BookTutorialRecommendation, BookTutorialRecommendation.tutorial_id == Tutorial.id)
        .where(BookTutorialRecommendation.book_id == book_id)
        .options(selectinload(Tutorial.category))
        .order_by(Tutorial.title)
    )
    payloads = await ContentService(db).serialize_tutorials(result.scalars().all(), current_user)
    return [TutorialRead(**payload) for payload in payloads]


# --- Admin management ---

@router.post("/admin/books", response_model=BookRead, status_code=status.HTTP_201_CREATED)
async def create_book(
    book_data: BookCreate,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """
    Add a book to the catalog (admin only).

    - **title**, **author**, **category_id**: required
    - **book_type**: `file` needs file_path or file_content, `link` needs
      external_link, `purchase` needs purchase_link
    - **file_content** / **cover_image_base64**: optional base64 payloads
    """
    if not (book_data.title and book_data.title.strip()) or not (book_data.author and book_data.author.strip()) \
            or book_data.category_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title, author, and category are required")

    _check_type_requirements(
        book_data.book_type, book_data.file_path, bool(book_data.file_content),
        book_data.external_link, book_data.purchase_link
    )
    await _ensure_category(db, book_data.category_id)

    fields = book_data.model_dump(exclude={"file_content", "cover_image_base64", "cover_image_type", "tags"})
    fields["title"] = book_data.title.strip()
    fields["author"] = book_data.author.strip()
    if fields.get("currency") is None:
        fields.pop("currency", None)
    book = Book(**fields)

    if book_data.file_content:
        _apply_file_content(book, book_data.file_content, book_data.file_type)
    if book_data.cover_image_base64:
        _apply_cover(book, book_data.cover_image_base64, book_data.cover_image_type)

    db.add(book)
    await db.flush()

    if book_data.tags:
        await ContentService(db).set_content_tags(ContentTypeEnum.book, book.id, book_data.tags)

    ActivityService(db).log_activity(current_user, "admin_create_book", f"Created book {book.id}: {book.title}", request)
    await db.commit()

    logger.info("Book created", book_id=book.id, book_type=book.book_type.value, admin_id=current_user.id)
    return await _book_payload(db, book.id, current_user)


@router.put("/admin/books/{book_id}", response_model=BookRead)
async def update_book(
    book_id: int,
    book_update: BookUpdate,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Partially update a book (admin only)."""
    update_data = book_update.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    result = await db.execute(select(Book).where(Book.id == book_id))
    book = result.scalar_one_or_none()
    if not book:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")

    for required in ("title", "author", "category_id", "book_type"):
        if required in update_data and update_data[required] is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{required} cannot be empty")

    if "category_id" in update_data:
        await _ensure_category(db, update_data["category_id"])

    file_content = update_data.pop("file_content", None)
    tags = update_data.pop("tags", None)
    replaced_uploads = [
        getattr(book, field) for field in ("file_path", "cover_image_path")
        if field in update_data and update_data[field] != getattr(book, field)
    ]

    for field, value in update_data.items():
        setattr(book, field, value)
    if file_content:
        _apply_file_content(book, file_content, update_data.get("file_type"))

    _check_type_requirements(
        book.book_type, book.file_path, book.file_content is not None,
        book.external_link, book.purchase_link
    )

    if tags is not None:
        await ContentService(db).set_content_tags(ContentTypeEnum.book, book.id, tags)

    book.updated_at = utcnow()
    ActivityService(db).log_activity(current_user, "admin_update_book", f"Updated book {book.id}: {book.title}", request)
    await db.commit()

    await _release_uploads(db, replaced_uploads)
    return await _book_payload(db, book_id, current_user)


@router.delete("/admin/books/{book_id}", response_model=MessageResponse)
async def delete_book(
    book_id: int,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Delete a book with its ratings, comments, bookmarks, tags and logs (admin only)."""
    result = await db.execute(
        select(Book.id, Book.title, Book.file_path, Book.cover_image_path).where(Book.id == book_id)
    )
    row = result.first()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")

    await ContentService(db).purge_content_references(ContentTypeEnum.book, book_id)
    await db.execute(delete(Book).where(Book.id == book_id))
    ActivityService(db).log_activity(current_user, "admin_delete_book", f"Deleted book {book_id}: {row.title}", request)
    await db.commit()

    await _release_uploads(db, [row.file_path, row.cover_image_path])

    logger.info("Book deleted", book_id=book_id, admin_id=current_user.id)
    return MessageResponse(message="Book deleted successfully")


@router.put("/admin/books/{book_id}/recommendations", response_model=List[TutorialRead])
async def set_book_recommendations(
    book_id: int,
    recommendation_data: RecommendationUpdate,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Replace the tutorials recommended alongside a book (admin only)."""
    if (await db.execute(select(Book.id).where(Book.id == book_id))).first() is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")

    tutorial_ids = list(dict.fromkeys(recommendation_data.tutorial_ids))
    if tutorial_ids:
        found = set((await db.execute(select(Tutorial.id).where(Tutorial.id.in_(tutorial_ids)))).scalars().all())
        missing = [tutorial_id for tutorial_id in tutorial_ids if tutorial_id not in found]
        if missing:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Tutorials not found: {missing}")

    await db.execute(delete(BookTutorialRecommendation).where(BookTutorialRecommendation.book_id == book_id))
    for tutorial_id in tutorial_ids:
        db.add(BookTutorialRecommendation(book_id=book_id, tutorial_id=tutorial_id))
    await db.commit()

    return await get_recommended_tutorials(book_id, current_user, db)
