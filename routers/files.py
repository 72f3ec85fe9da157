"""
Admin upload routes for book files and cover images.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status, UploadFile, File
from starlette.concurrency import run_in_threadpool

from core.config import settings
from core.security import get_current_admin_user
from core.logging import get_logger
from core.rate_limiting import check_rate_limit
from core.file_utils import (
    save_upload_file, save_upload_bytes, decode_base64_payload, check_base64_length,
    validate_file_size, validate_mime_type, resolve_upload_path
)
from core.thumbnails import (
    ThumbnailError, THUMBNAIL_MIME, resize_image, render_pdf_thumbnail, pdf_too_large
)
from core.youtube import extract_amazon_cover
from models.models import User
from schemas.file import (
    FileUploadResponse, Base64UploadRequest, ScrapeCoverRequest, ScrapeCoverResponse,
    GenerateThumbnailRequest, GenerateThumbnailResponse
)

IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png", ".gif", ".webp")

router = APIRouter(prefix="/api/admin", tags=["Files"])

logger = get_logger("files")


def _unsupported_type(mime_type: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"Unsupported file type: {mime_type}. Allowed types: {', '.join(settings.allowed_upload_mime_types)}"
    )


@router.post("/upload-file", response_model=FileUploadResponse)
async def upload_file(
    request: Request,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_admin_user)
):
    """
    Upload a book file or image.

    - Supports PDF, DOC, DOCX, TXT, EPUB and common image formats
    - Maximum file size: 100MB (configurable)
    - Stored under /uploads; identical content maps to the same file
    """
    check_rate_limit(request, "upload", current_user.id, current_user.role.value)

    if not validate_mime_type(file.content_type):
        raise _unsupported_type(file.content_type)

    web_path, size, mime_type = await save_upload_file(file)

    logger.info("File uploaded", path=web_path, size=size, mime_type=mime_type, admin_id=current_user.id)
    return FileUploadResponse(
        success=True,
        filePath=web_path,
        originalName=file.filename or "",
        size=size,
        mimetype=mime_type
    )


@router.post("/upload-base64", response_model=FileUploadResponse)
async def upload_base64(
    upload_data: Base64UploadRequest,
    request: Request,
    current_user: User = Depends(get_current_admin_user)
):
    """Upload a file sent as base64 text (optionally a data URL)."""
    check_rate_limit(request, "upload", current_user.id, current_user.role.value)

    if not validate_mime_type(upload_data.mime_type):
        raise _unsupported_type(upload_data.mime_type)

    check_base64_length(upload_data.content_base64)
    try:
        content, _ = decode_base64_payload(upload_data.content_base64)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    validate_file_size(len(content))

    web_path = save_upload_bytes(content, upload_data.filename, upload_data.mime_type)

    logger.info("Base64 file uploaded", path=web_path, size=len(content), admin_id=current_user.id)
    return FileUploadResponse(
        success=True,
        filePath=web_path,
        originalName=upload_data.filename,
        size=len(content),
        mimetype=upload_data.mime_type
    )


@router.post("/scrape-cover", response_model=ScrapeCoverResponse)
async def scrape_cover(
    scrape_data: ScrapeCoverRequest,
    current_user: User = Depends(get_current_admin_user)
):
    """Derive a cover image URL from a retailer product link (Amazon ASIN links)."""
    cover_url = extract_amazon_cover(scrape_data.url)
    if not cover_url:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Could not extract cover from this URL")
    return ScrapeCoverResponse(coverUrl=cover_url)


@router.post("/generate-thumbnail", response_model=GenerateThumbnailResponse)
async def generate_thumbnail(
    thumbnail_data: GenerateThumbnailRequest,
    request: Request,
    current_user: User = Depends(get_current_admin_user)
):
    """
    Build a 300x400 PNG thumbnail from an uploaded PDF (first page) or image.

    Only files under /uploads are accepted. The thumbnail is stored as a new
    upload and its path is returned for use as a book cover.
    """
    check_rate_limit(request, "upload", current_user.id, current_user.role.value)

    disk_path = resolve_upload_path(thumbnail_data.filePath)
    if disk_path is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")

    file_type = (thumbnail_data.type or "").lower()
    suffix = disk_path.suffix.lower()
    try:
        if file_type in ("pdf", "application/pdf") or suffix == ".pdf":
            if pdf_too_large(disk_path.stat().st_size):
                raise HTTPException(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    detail="PDF file too large for thumbnail generation"
                )
            thumbnail = await run_in_threadpool(render_pdf_thumbnail, disk_path)
        elif file_type.startswith("image/") or suffix in IMAGE_SUFFIXES:
            thumbnail = await run_in_threadpool(resize_image, disk_path.read_bytes())
        else:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Unsupported file type for thumbnail generation"
            )
    except ThumbnailError as e:
        logger.error("Thumbnail generation failed", path=thumbnail_data.filePath, error=str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to generate thumbnail")

    web_path = save_upload_bytes(thumbnail, f"thumbnail_{disk_path.stem}.png", THUMBNAIL_MIME)
    logger.info("Thumbnail generated", source=thumbnail_data.filePath, path=web_path, admin_id=current_user.id)
    return GenerateThumbnailResponse(thumbnailPath=web_path)
