"""
Router for the admin analytics dashboard, activity logs and search history.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from db_config import get_async_db
from core.security import get_current_active_user, get_current_admin_user
from models.models import User
from schemas.analytics import (
    AnalyticsOverview, UserGrowthPoint, DailyActivityPoint, RecentActivityItem,
    ActivityLogListResponse, ActivityStats, SearchQueryStat
)
from services.analytics_service import AnalyticsService

router = APIRouter(prefix="/api", tags=["Analytics"])


@router.get("/admin/analytics", response_model=AnalyticsOverview)
async def get_analytics_overview(
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """User, content and engagement totals with top content and per-category stats."""
    return await AnalyticsService(db).get_overview()


@router.get("/admin/analytics/user-growth", response_model=List[UserGrowthPoint])
async def get_user_growth(
    months: int = Query(6, ge=1, le=60),
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    return await AnalyticsService(db).get_user_growth(months)


@router.get("/admin/analytics/daily-activity", response_model=List[DailyActivityPoint])
async def get_daily_activity(
    days: int = Query(7, ge=1, le=365),
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    return await AnalyticsService(db).get_daily_activity(days)


@router.get("/admin/analytics/recent-activity", response_model=List[RecentActivityItem])
async def get_recent_activity(
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    return await AnalyticsService(db).get_recent_activity(limit)


@router.get("/admin/activity-logs", response_model=ActivityLogListResponse)
async def list_activity_logs(
    action_type: Optional[str] = Query(None, max_length=50),
    user_id: Optional[int] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    return await AnalyticsService(db).get_activity_logs(action_type, user_id, skip, limit)


@router.get("/admin/activity-stats", response_model=ActivityStats)
async def get_activity_stats(
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    return await AnalyticsService(db).get_activity_stats()


@router.get("/activity-logs", response_model=ActivityLogListResponse)
async def list_my_activity(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    """The caller's own activity trail."""
    return await AnalyticsService(db).get_activity_logs(user_id=current_user.id, skip=skip, limit=limit)


@router.get("/admin/search-history", response_model=List[SearchQueryStat])
async def get_search_history(
    limit: int = Query(20, ge=1, le=200),
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Most frequent search queries."""
    return await AnalyticsService(db).get_search_stats(limit)
