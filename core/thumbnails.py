"""
Book thumbnails: first-page PDF renders and resized cover images.

PDF pages are rasterised with PyMuPDF, images are fitted into a 300x400 box
with Pillow and always come out as PNG on a white background.
"""
import io
from pathlib import Path
from typing import Union

import fitz
from PIL import Image

from core.logging import get_logger

logger = get_logger("thumbnails")

THUMBNAIL_SIZE = (300, 400)
THUMBNAIL_MIME = "image/png"
PDF_RENDER_DPI = 150
MAX_PDF_THUMBNAIL_MB = 50


class ThumbnailError(Exception):
    """Raised when a file cannot be turned into a thumbnail."""


def resize_image(content: bytes) -> bytes:
    """Fit an image into THUMBNAIL_SIZE (never enlarging) and return PNG bytes."""
    try:
        with Image.open(io.BytesIO(content)) as image:
            image.load()
            if image.mode in ("RGBA", "LA", "P"):
                rgba = image.convert("RGBA")
                flattened = Image.new("RGB", rgba.size, (255, 255, 255))
                flattened.paste(rgba, mask=rgba.split()[-1])
            else:
                flattened = image.convert("RGB")
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise ThumbnailError(f"Unreadable image: {e}") from e

    flattened.thumbnail(THUMBNAIL_SIZE)
    output = io.BytesIO()
    flattened.save(output, format="PNG", optimize=True)
    return output.getvalue()


def render_pdf_thumbnail(source: Union[bytes, Path, str]) -> bytes:
    """
    Render the first page of a PDF as a thumbnail.

    Args:
        source: PDF bytes or a path on disk

    Raises:
        ThumbnailError: for encrypted, empty or unreadable documents
    """
    try:
        if isinstance(source, (bytes, bytearray)):
            doc = fitz.open(stream=bytes(source), filetype="pdf")
        else:
            doc = fitz.open(str(source))
    except Exception as e:
        # MuPDF surfaces broken files through several exception types
        raise ThumbnailError(f"Unreadable PDF: {e}") from e

    try:
        if doc.is_encrypted:
            raise ThumbnailError("PDF is password protected")
        if doc.page_count == 0:
            raise ThumbnailError("PDF has no pages")
        try:
            page_png = doc[0].get_pixmap(dpi=PDF_RENDER_DPI).tobytes("png")
        except Exception as e:
            raise ThumbnailError(f"PDF render failed: {e}") from e
    finally:
        doc.close()

    logger.debug("Rendered PDF first page", size=len(page_png))
    return resize_image(page_png)


def pdf_too_large(size_bytes: int) -> bool:
    return size_bytes > MAX_PDF_THUMBNAIL_MB * 1024 * 1024
