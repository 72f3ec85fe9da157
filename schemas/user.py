"""
User-related Pydantic schemas for request/response validation.
"""
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, EmailStr, Field
from models.models import UserRoleEnum


class UserRead(BaseModel):
    """Public view of a user (never includes the password hash)."""
    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: str
    profile_image: Optional[str] = None
    role: UserRoleEnum
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile."""
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)
    email: Optional[EmailStr] = None
    profile_image: Optional[str] = Field(None, max_length=500)


class AdminUserRead(UserRead):
    total_downloads: int = 0
    total_views: int = 0


class AdminUserListResponse(BaseModel):
    users: List[AdminUserRead]


class AdminUserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: UserRoleEnum = UserRoleEnum.user
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)


class AdminUserUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)
    role: Optional[UserRoleEnum] = None


class UserStatusUpdate(BaseModel):
    is_active: bool


class UserRoleUpdate(BaseModel):
    role: UserRoleEnum


class UserStats(BaseModel):
    total_users: int
    active_users: int
    inactive_users: int
    users_by_role: Dict[str, int]


class UserStatsResponse(BaseModel):
    stats: UserStats


class UserProfileSummary(BaseModel):
    """Compact row for the admin profiles listing."""
    id: int
    username: str
    email: str
    display_name: str
    role: UserRoleEnum
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class RoleSummary(BaseModel):
    name: str
    user_count: int


class RoleLookupResponse(BaseModel):
    role: Optional[str] = None
    roles: List[str] = []


class MessageResponse(BaseModel):
    message: str


class ProfileResponse(BaseModel):
    user: UserRead


class AdminUserResponse(BaseModel):
    message: Optional[str] = None
    user: AdminUserRead
