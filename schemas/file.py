"""
File upload schemas for the admin upload endpoints.
"""
from typing import Optional
from pydantic import BaseModel, Field


class FileUploadResponse(BaseModel):
    """Keys match what the admin book form stores back into `file_path`."""
    success: bool = True
    filePath: str = Field(..., description="Public /uploads/... path")
    originalName: str
    size: int
    mimetype: str


class Base64UploadRequest(BaseModel):
    filename: str = Field(..., min_length=1, max_length=255)
    content_base64: str = Field(..., min_length=1)
    mime_type: str = Field(..., min_length=1, max_length=100)


class ScrapeCoverRequest(BaseModel):
    url: str = Field(..., min_length=1, max_length=2000)


class ScrapeCoverResponse(BaseModel):
    coverUrl: str


class GenerateThumbnailRequest(BaseModel):
    filePath: str = Field(..., min_length=1, max_length=500, description="/uploads/... path of a PDF or image")
    type: Optional[str] = Field(None, max_length=100, description="'pdf' or an image MIME type")


class GenerateThumbnailResponse(BaseModel):
    thumbnailPath: str
