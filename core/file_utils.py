"""
Utilities for storing uploaded files and decoding base64 payloads.
"""
import base64
import binascii
import hashlib
import os
import re
from pathlib import Path
from typing import Optional, Tuple
from fastapi import UploadFile
from core.config import settings
from core.exceptions import PayloadTooLargeException
from core.logging import get_logger

logger = get_logger("files")

UPLOADS_URL_PREFIX = "/uploads/"

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(;[\w-]+=[\w-]+)*;base64,", re.IGNORECASE)
_SAFE_NAME_RE = re.compile(r"[^A-Za-z0-9._-]+")

# Extensions used when a payload arrives without a filename
MIME_EXTENSIONS = {
    "application/pdf": ".pdf",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "text/plain": ".txt",
    "application/epub+zip": ".epub",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
}


def _upload_root() -> Path:
    root = Path(settings.upload_directory)
    root.mkdir(parents=True, exist_ok=True)
    return root


def save_upload_bytes(content: bytes, filename: Optional[str] = None,
                      mime_type: Optional[str] = None, subfolder: str = "") -> str:
    """
    Write `content` under the upload directory and return its public web path.

    The stored name is `<sha256 prefix>-<sanitised original name>` so that the same
    payload uploaded twice maps to the same file.
    """
    digest = hashlib.sha256(content).hexdigest()[:16]
    base_name = _SAFE_NAME_RE.sub("_", os.path.basename(filename or "")).strip("._")
    if not base_name:
        base_name = "file" + MIME_EXTENSIONS.get(mime_type or "", "")
    stored_name = f"{digest}-{base_name}"

    target_dir = _upload_root()
    if subfolder:
        target_dir = target_dir / subfolder
        target_dir.mkdir(parents=True, exist_ok=True)

    (target_dir / stored_name).write_bytes(content)

    web_path = UPLOADS_URL_PREFIX + (f"{subfolder}/{stored_name}" if subfolder else stored_name)
    logger.info("File stored", path=web_path, size=len(content), mime_type=mime_type)
    return web_path


async def save_upload_file(upload_file: UploadFile, subfolder: str = "") -> Tuple[str, int, str]:
    """
    Read a multipart upload fully, validate its size and store it.

    Returns:
        Tuple containing (web_path, file_size, mime_type)
    """
    content = await upload_file.read()
    validate_file_size(len(content))
    mime_type = upload_file.content_type or "application/octet-stream"
    web_path = save_upload_bytes(content, upload_file.filename, mime_type, subfolder)
    await upload_file.seek(0)
    return web_path, len(content), mime_type


def decode_base64_payload(payload: str) -> Tuple[bytes, Optional[str]]:
    """
    Decode base64 text, accepting an optional `data:<mime>;base64,` prefix.

    Returns:
        Tuple of (raw bytes, mime type from the data URL prefix or None)

    Raises:
        ValueError: when the payload is not valid base64
    """
    mime_type = None
    match = _DATA_URL_RE.match(payload)
    if match:
        mime_type = match.group("mime")
        payload = payload[match.end():]

    try:
        return base64.b64decode(payload, validate=True), mime_type
    except (binascii.Error, ValueError) as e:
        raise ValueError("Invalid base64 content") from e


def check_base64_length(payload: str) -> None:
    """Reject base64 text that would decode past the upload cap (base64 inflates ~4/3)."""
    if len(payload) > settings.max_upload_size_bytes * 1.4:
        raise PayloadTooLargeException(max_size_mb=settings.max_upload_size_mb)


def validate_file_size(file_size: int) -> None:
    if file_size > settings.max_upload_size_bytes:
        raise PayloadTooLargeException(max_size_mb=settings.max_upload_size_mb)


def validate_mime_type(mime_type: Optional[str]) -> bool:
    return bool(mime_type) and mime_type in settings.allowed_upload_mime_types


def resolve_upload_path(web_path: str) -> Optional[Path]:
    """
    Map a `/uploads/...` web path to the file on disk.

    Returns None for paths outside the upload directory or missing files.
    """
    if not web_path or not web_path.startswith(UPLOADS_URL_PREFIX):
        return None

    root = _upload_root().resolve()
    candidate = (root / web_path[len(UPLOADS_URL_PREFIX):]).resolve()
    if root not in candidate.parents or not candidate.is_file():
        return None
    return candidate


def delete_file(web_path: str) -> bool:
    """Delete an uploaded file by web path; returns False when nothing was removed."""
    disk_path = resolve_upload_path(web_path)
    if disk_path is None:
        return False
    try:
        disk_path.unlink()
    except OSError as e:
        logger.warning("Failed to delete uploaded file", path=web_path, error=str(e))
        return False
    return True
