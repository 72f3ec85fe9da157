"""
Router for user administration, first-admin bootstrap and role lookup.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import or_, select, func, delete

from core.security import get_current_admin_user, get_password_hash
from core.logging import get_logger
from core.text_utils import utcnow, username_from_display_name
from db_config import get_async_db
from models.models import User, UserRoleEnum, DownloadLog, ViewLog
from schemas.user import (
    AdminUserRead, AdminUserListResponse, AdminUserCreate, AdminUserUpdate, AdminUserResponse,
    UserStatusUpdate, UserRoleUpdate, UserStats, UserStatsResponse, UserProfileSummary,
    RoleSummary, RoleLookupResponse, MessageResponse
)
from schemas.auth import AdminSetupRequest, AdminSetupResponse
from services.activity_service import ActivityService

router = APIRouter(prefix="/api", tags=["Users"])

logger = get_logger("users")


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


async def _ensure_unique(db: AsyncSession, username: Optional[str], email: Optional[str],
                         exclude_id: Optional[int] = None) -> None:
    """Raise 409 when another account already uses the username or email."""
    checks = []
    if username is not None:
        checks.append((User.username == username, "Username already taken"))
    if email is not None:
        checks.append((User.email == email, "Email already registered"))

    for criterion, message in checks:
        stmt = select(User.id).where(criterion)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if (await db.execute(stmt)).first():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=message)


async def _with_engagement(db: AsyncSession, users: List[User]) -> List[AdminUserRead]:
    """Attach per-user download and view totals."""
    ids = [user.id for user in users]
    downloads, views = {}, {}
    if ids:
        result = await db.execute(
            select(DownloadLog.user_id, func.count(DownloadLog.id))
            .where(DownloadLog.user_id.in_(ids))
            .group_by(DownloadLog.user_id)
        )
        downloads = dict(result.all())
        result = await db.execute(
            select(ViewLog.user_id, func.count(ViewLog.id))
            .where(ViewLog.user_id.in_(ids))
            .group_by(ViewLog.user_id)
        )
        views = dict(result.all())

    return [
        AdminUserRead.model_validate(user).model_copy(update={
            "total_downloads": downloads.get(user.id, 0),
            "total_views": views.get(user.id, 0),
        })
        for user in users
    ]


# --- Admin user management ---

@router.get("/admin/users", response_model=AdminUserListResponse)
async def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """List all users with their engagement totals (admin only)."""
    stmt = select(User).order_by(User.created_at.desc(), User.id.desc()).offset(skip).limit(limit)
    result = await db.execute(stmt)
    users = result.scalars().all()

    return AdminUserListResponse(users=await _with_engagement(db, users))


@router.post("/admin/users", response_model=AdminUserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: AdminUserCreate,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Create a user with an explicit role (admin only)."""
    await _ensure_unique(db, user_data.username, user_data.email)

    user = User(
        username=user_data.username,
        email=user_data.email,
        password_hash=get_password_hash(user_data.password),
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        role=user_data.role,
        is_active=True,
    )
    db.add(user)
    ActivityService(db).log_activity(current_user, "admin_create_user", f"Created user {user_data.username}", request)
    await db.commit()
    await db.refresh(user)

    logger.info("User created by admin", admin_id=current_user.id, user_id=user.id, role=user.role.value)
    return AdminUserResponse(message="User created successfully", user=AdminUserRead.model_validate(user))


@router.get("/admin/users/stats", response_model=UserStatsResponse)
async def get_user_stats(
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Totals by activation status and role."""
    result = await db.execute(select(User.role, User.is_active, func.count(User.id)).group_by(User.role, User.is_active))

    users_by_role = {role.value: 0 for role in UserRoleEnum}
    active = inactive = 0
    for role, is_active, count in result.all():
        users_by_role[role.value] += count
        if is_active:
            active += count
        else:
            inactive += count

    return UserStatsResponse(stats=UserStats(
        total_users=active + inactive,
        active_users=active,
        inactive_users=inactive,
        users_by_role=users_by_role,
    ))


@router.get("/admin/users/search", response_model=AdminUserListResponse)
async def search_users(
    q: str = Query(..., min_length=1, description="Matches username, email, first or last name"),
    role: str = Query("all", description="Role name or 'all'"),
    user_status: str = Query("all", alias="status", description="'active', 'inactive' or 'all'"),
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Search users (admin only)."""
    pattern = f"%{q}%"
    stmt = select(User).where(or_(
        User.username.ilike(pattern),
        User.email.ilike(pattern),
        User.first_name.ilike(pattern),
        User.last_name.ilike(pattern)
    ))

    if role != "all":
        try:
            stmt = stmt.where(User.role == UserRoleEnum(role))
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid role: {role}")

    if user_status == "active":
        stmt = stmt.where(User.is_active.is_(True))
    elif user_status == "inactive":
        stmt = stmt.where(User.is_active.is_(False))
    elif user_status != "all":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid status: {user_status}")

    result = await db.execute(stmt.order_by(User.created_at.desc(), User.id.desc()))
    return AdminUserListResponse(users=await _with_engagement(db, result.scalars().all()))


@router.put("/admin/users/{user_id}", response_model=AdminUserResponse)
async def update_user(
    user_id: int,
    user_update: AdminUserUpdate,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Partially update a user (admin only)."""
    update_data = {
        field: value for field, value in user_update.model_dump(exclude_unset=True).items()
        if value is not None or field in ("first_name", "last_name")
    }
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    user = await _get_user_or_404(db, user_id)

    if current_user.id == user_id and update_data.get("role", UserRoleEnum.admin) != UserRoleEnum.admin:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot change your own admin role")

    await _ensure_unique(db, update_data.get("username"), update_data.get("email"), exclude_id=user_id)

    for field, value in update_data.items():
        setattr(user, field, value)
    user.updated_at = utcnow()

    ActivityService(db).log_activity(current_user, "admin_update_user", f"Updated user {user.username}", request)
    await db.commit()
    await db.refresh(user)

    return AdminUserResponse(message="User updated successfully", user=AdminUserRead.model_validate(user))


@router.delete("/admin/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """
    Delete a user account (admin only).

    Sessions, ratings, bookmarks, reading history, comments, downloads, test
    results and certificates go with it; view/search/activity rows are kept
    with the user reference cleared.
    """
    if current_user.id == user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot delete your own account")

    user = await _get_user_or_404(db, user_id)
    username = user.username

    await db.execute(delete(User).where(User.id == user_id))
    ActivityService(db).log_activity(current_user, "admin_delete_user", f"Deleted user {username}", request)
    await db.commit()

    logger.info("User deleted by admin", admin_id=current_user.id, user_id=user_id)
    return MessageResponse(message="User deleted successfully")


@router.patch("/admin/users/{user_id}/status", response_model=AdminUserResponse)
async def update_user_status(
    user_id: int,
    status_update: UserStatusUpdate,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Activate or deactivate a user (admin only)."""
    if current_user.id == user_id and not status_update.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot deactivate your own account")

    user = await _get_user_or_404(db, user_id)
    user.is_active = status_update.is_active
    user.updated_at = utcnow()
    await db.commit()
    await db.refresh(user)

    status_text = "activated" if status_update.is_active else "deactivated"
    return AdminUserResponse(message=f"User {status_text} successfully", user=AdminUserRead.model_validate(user))


@router.patch("/admin/users/{user_id}/role", response_model=AdminUserResponse)
async def update_user_role(
    user_id: int,
    role_update: UserRoleUpdate,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Change a user's role (admin only)."""
    if current_user.id == user_id and role_update.role != UserRoleEnum.admin:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot change your own admin role")

    user = await _get_user_or_404(db, user_id)
    user.role = role_update.role
    user.updated_at = utcnow()
    await db.commit()
    await db.refresh(user)

    return AdminUserResponse(
        message=f"User role updated to {role_update.role.value}",
        user=AdminUserRead.model_validate(user)
    )


@router.get("/admin/profiles", response_model=List[UserProfileSummary])
async def list_profiles(
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    result = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
    return [UserProfileSummary.model_validate(user) for user in result.scalars().all()]


@router.get("/admin/roles", response_model=List[RoleSummary])
async def list_roles(
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    result = await db.execute(select(User.role, func.count(User.id)).group_by(User.role))
    counts = {role: count for role, count in result.all()}
    return [RoleSummary(name=role.value, user_count=counts.get(role, 0)) for role in UserRoleEnum]


# --- Bootstrap and lookup ---

@router.post("/admin/setup", response_model=AdminSetupResponse, status_code=status.HTTP_201_CREATED)
async def setup_admin(
    setup_data: AdminSetupRequest,
    request: Request,
    db: AsyncSession = Depends(get_async_db)
):
    """
    Create the first administrator account.

    Only available while no admin exists; afterwards admins are managed
    through /api/admin/users.
    """
    existing_admin = await db.execute(select(User.id).where(User.role == UserRoleEnum.admin).limit(1))
    if existing_admin.first():
        logger.warning("Admin setup attempted after bootstrap", email=setup_data.email)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="An administrator already exists")

    await _ensure_unique(db, None, setup_data.email)

    base_username = username_from_display_name(setup_data.displayName, setup_data.email)
    username, suffix = base_username, 1
    while (await db.execute(select(User.id).where(User.username == username))).first():
        suffix += 1
        username = f"{base_username[:50 - len(str(suffix)) - 1]}_{suffix}"

    first_name, _, last_name = setup_data.displayName.strip().partition(" ")
    admin = User(
        username=username,
        email=setup_data.email,
        password_hash=get_password_hash(setup_data.password),
        first_name=first_name[:50] or None,
        last_name=last_name.strip()[:50] or None,
        role=UserRoleEnum.admin,
        is_active=True,
    )
    db.add(admin)
    await db.flush()
    ActivityService(db).log_activity(admin, "admin_setup", f"Initial administrator {username}", request)
    await db.commit()

    logger.info("Initial administrator created", username=username, user_id=admin.id)
    return AdminSetupResponse(id=admin.id, email=admin.email, username=admin.username, role=admin.role.value)


@router.get("/users/role", response_model=RoleLookupResponse)
async def get_user_role(
    email: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_async_db)
):
    """Role lookup by email; unknown emails resolve to no role."""
    if not email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required")

    result = await db.execute(select(User.role).where(User.email == email))
    role = result.scalar_one_or_none()
    if role is None:
        return RoleLookupResponse(role=None, roles=[])
    return RoleLookupResponse(role=role.value, roles=[role.value])
