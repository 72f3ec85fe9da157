"""
Pydantic schemas for the admin analytics dashboard and activity logs.

Dashboard keys are camelCase because the admin charts consume them verbatim.
"""
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class UserMetrics(BaseModel):
    total: int
    newThisMonth: int
    activeThisWeek: int


class ContentMetrics(BaseModel):
    totalBooks: int
    totalTutorials: int
    totalCategories: int


class EngagementMetrics(BaseModel):
    totalViews: int
    totalDownloads: int
    totalRatings: int


class TopContentItem(BaseModel):
    id: int
    title: str
    type: str
    views: int
    downloads: int
    category: str


class CategoryStat(BaseModel):
    name: str
    bookCount: int
    tutorialCount: int
    totalViews: int


class AnalyticsOverview(BaseModel):
    users: UserMetrics
    content: ContentMetrics
    engagement: EngagementMetrics
    topContent: List[TopContentItem]
    categoryStats: List[CategoryStat]


class UserGrowthPoint(BaseModel):
    month: str = Field(..., description="YYYY-MM")
    newUsers: int
    totalUsers: int


class DailyActivityPoint(BaseModel):
    date: str = Field(..., description="YYYY-MM-DD")
    activeUsers: int
    pageViews: int
    downloads: int


class RecentActivityItem(BaseModel):
    id: int
    action: str
    time: str
    author: str
    type: str
    created_at: datetime


class ActivityLogRead(BaseModel):
    id: int
    user_id: Optional[int] = None
    username: Optional[str] = None
    action_type: str
    details: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: datetime


class ActivityLogListResponse(BaseModel):
    logs: List[ActivityLogRead]
    total: int
    skip: int
    limit: int


class ActivityStats(BaseModel):
    total: int
    last_24_hours: int
    last_7_days: int
    by_action: Dict[str, int]


class SearchQueryStat(BaseModel):
    query: str
    count: int
    last_searched_at: datetime
