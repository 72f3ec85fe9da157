"""
Read-only view of runtime settings for the admin panel.
"""
from typing import List
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from core.config import settings
from core.security import get_current_admin_user
from models.models import User

router = APIRouter(prefix="/api/admin", tags=["Settings"])


class PublicSettings(BaseModel):
    app_name: str
    app_version: str
    debug: bool
    max_upload_size_mb: int
    allowed_upload_mime_types: List[str]
    access_token_expire_minutes: int
    rate_limiting_enabled: bool
    request_timeout_seconds: int


@router.get("/settings", response_model=PublicSettings)
async def get_settings(current_user: User = Depends(get_current_admin_user)):
    """Non-secret configuration values; credentials and keys are never exposed."""
    return PublicSettings(
        app_name=settings.app_name,
        app_version=settings.app_version,
        debug=settings.debug,
        max_upload_size_mb=settings.max_upload_size_mb,
        allowed_upload_mime_types=settings.allowed_upload_mime_types,
        access_token_expire_minutes=settings.jwt_access_token_expire_minutes,
        rate_limiting_enabled=settings.enable_rate_limiting,
        request_timeout_seconds=settings.request_timeout_seconds,
    )
