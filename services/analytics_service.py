"""
Admin analytics service: dashboard overview, growth and activity time series.

Time bucketing (per month / per day) is done in Python over the rows of the
requested window so the same code runs on MySQL and SQLite.
"""
import calendar
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, desc

from core.text_utils import utcnow, format_time_ago
from models.models import (
    User, Book, Tutorial, Category, Rating, ViewLog, DownloadLog,
    ContentTypeEnum, UserActivityLog, SearchHistory
)


def months_ago(moment: datetime, months: int) -> datetime:
    """Same wall-clock time `months` calendar months earlier (day clamped to month end)."""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


class AnalyticsService:
    """Aggregations backing the admin dashboard."""

    TOP_CONTENT_LIMIT = 10

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _scalar_count(self, model, *criteria) -> int:
        stmt = select(func.count()).select_from(model)
        if criteria:
            stmt = stmt.where(*criteria)
        result = await self.db.execute(stmt)
        return int(result.scalar() or 0)

    async def _counts_by_content(self, model, content_type: ContentTypeEnum) -> Dict[int, int]:
        stmt = (
            select(model.content_id, func.count(model.id))
            .where(model.content_type == content_type)
            .group_by(model.content_id)
        )
        result = await self.db.execute(stmt)
        return dict(result.all())

    async def get_overview(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()

        users = {
            "total": await self._scalar_count(User),
            "newThisMonth": await self._scalar_count(User, User.created_at >= months_ago(now, 1)),
            "activeThisWeek": await self._scalar_count(User, User.updated_at >= now - timedelta(weeks=1)),
        }
        content = {
            "totalBooks": await self._scalar_count(Book),
            "totalTutorials": await self._scalar_count(Tutorial),
            "totalCategories": await self._scalar_count(Category),
        }
        engagement = {
            "totalViews": await self._scalar_count(ViewLog),
            "totalDownloads": await self._scalar_count(DownloadLog),
            "totalRatings": await self._scalar_count(Rating),
        }

        book_views = await self._counts_by_content(ViewLog, ContentTypeEnum.book)
        tutorial_views = await self._counts_by_content(ViewLog, ContentTypeEnum.tutorial)
        book_downloads = await self._counts_by_content(DownloadLog, ContentTypeEnum.book)

        categories = (await self.db.execute(select(Category.id, Category.name))).all()
        category_names = {category_id: name for category_id, name in categories}

        books = (await self.db.execute(select(Book.id, Book.title, Book.category_id))).all()
        tutorials = (await self.db.execute(select(Tutorial.id, Tutorial.title, Tutorial.category_id))).all()

        top_content = [
            {
                "id": row.id,
                "title": row.title,
                "type": "book",
                "views": book_views.get(row.id, 0),
                "downloads": book_downloads.get(row.id, 0),
                "category": category_names.get(row.category_id) or "Uncategorized",
            }
            for row in books
        ] + [
            {
                "id": row.id,
                "title": row.title,
                "type": "tutorial",
                "views": tutorial_views.get(row.id, 0),
                "downloads": 0,
                "category": category_names.get(row.category_id) or "Uncategorized",
            }
            for row in tutorials
        ]
        top_content.sort(key=lambda item: item["views"], reverse=True)

        per_category = defaultdict(lambda: {"bookCount": 0, "tutorialCount": 0, "totalViews": 0})
        for row in books:
            per_category[row.category_id]["bookCount"] += 1
            per_category[row.category_id]["totalViews"] += book_views.get(row.id, 0)
        for row in tutorials:
            per_category[row.category_id]["tutorialCount"] += 1
            per_category[row.category_id]["totalViews"] += tutorial_views.get(row.id, 0)

        category_stats = [
            {"name": name, **per_category[category_id]}
            for category_id, name in categories
        ]
        category_stats.sort(key=lambda item: item["totalViews"], reverse=True)

        return {
            "users": users,
            "content": content,
            "engagement": engagement,
            "topContent": top_content[:self.TOP_CONTENT_LIMIT],
            "categoryStats": category_stats,
        }

    async def get_user_growth(self, months: int = 6, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """
        New registrations per calendar month inside the window.

        `totalUsers` is cumulative and includes accounts created before the window.
        """
        now = now or utcnow()
        window_start = months_ago(now, months)

        baseline = await self._scalar_count(User, User.created_at < window_start)
        result = await self.db.execute(select(User.created_at).where(User.created_at >= window_start))
        per_month = Counter(created_at.strftime("%Y-%m") for created_at in result.scalars().all())

        growth = []
        running_total = baseline
        for month in sorted(per_month):
            running_total += per_month[month]
            growth.append({"month": month, "newUsers": per_month[month], "totalUsers": running_total})
        return growth

    async def get_daily_activity(self, days: int = 7, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Per-day distinct viewers, page views and downloads, newest day first."""
        now = now or utcnow()
        window_start = now - timedelta(days=days)

        views = await self.db.execute(
            select(ViewLog.viewed_at, ViewLog.user_id).where(ViewLog.viewed_at >= window_start)
        )
        downloads = await self.db.execute(
            select(DownloadLog.downloaded_at).where(DownloadLog.downloaded_at >= window_start)
        )

        page_views: Counter = Counter()
        viewers = defaultdict(set)
        for viewed_at, user_id in views.all():
            day = viewed_at.strftime("%Y-%m-%d")
            page_views[day] += 1
            if user_id is not None:
                viewers[day].add(user_id)

        download_counts = Counter(moment.strftime("%Y-%m-%d") for moment in downloads.scalars().all())

        all_days = sorted(set(page_views) | set(download_counts), reverse=True)[:days]
        return [
            {
                "date": day,
                "activeUsers": len(viewers.get(day, ())),
                "pageViews": page_views.get(day, 0),
                "downloads": download_counts.get(day, 0),
            }
            for day in all_days
        ]

    async def get_recent_activity(self, limit: int = 10, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Books and tutorials added during the last 30 days, newest first."""
        now = now or utcnow()
        window_start = now - timedelta(days=30)

        books = await self.db.execute(
            select(Book.id, Book.title, Book.author, Book.created_at)
            .where(Book.created_at >= window_start)
            .order_by(desc(Book.created_at))
            .limit(limit)
        )
        tutorials = await self.db.execute(
            select(Tutorial.id, Tutorial.title, Tutorial.created_at)
            .where(Tutorial.created_at >= window_start)
            .order_by(desc(Tutorial.created_at))
            .limit(limit)
        )

        items = [
            {
                "id": row.id,
                "action": f"New book added: {row.title}",
                "author": row.author,
                "type": "book",
                "created_at": row.created_at,
            }
            for row in books.all()
        ] + [
            {
                "id": row.id,
                "action": f"New tutorial published: {row.title}",
                "author": "System",
                "type": "tutorial",
                "created_at": row.created_at,
            }
            for row in tutorials.all()
        ]
        items.sort(key=lambda item: item["created_at"], reverse=True)

        for item in items:
            item["time"] = format_time_ago(item["created_at"], now)
        return items[:limit]

    async def get_activity_stats(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        result = await self.db.execute(
            select(UserActivityLog.action_type, func.count(UserActivityLog.id))
            .group_by(UserActivityLog.action_type)
        )
        by_action = {action: count for action, count in result.all()}
        return {
            "total": sum(by_action.values()),
            "last_24_hours": await self._scalar_count(
                UserActivityLog, UserActivityLog.created_at >= now - timedelta(hours=24)
            ),
            "last_7_days": await self._scalar_count(
                UserActivityLog, UserActivityLog.created_at >= now - timedelta(days=7)
            ),
            "by_action": by_action,
        }

    async def get_search_stats(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Most frequent search queries with the time each was last run."""
        last_searched = func.max(SearchHistory.created_at)
        result = await self.db.execute(
            select(SearchHistory.search_query, func.count(SearchHistory.id).label("count"), last_searched)
            .group_by(SearchHistory.search_query)
            .order_by(desc("count"), desc(last_searched))
            .limit(limit)
        )
        return [
            {"query": query, "count": count, "last_searched_at": last_at}
            for query, count, last_at in result.all()
        ]

    async def get_activity_logs(self, action_type: Optional[str] = None, user_id: Optional[int] = None,
                                skip: int = 0, limit: int = 50) -> Dict[str, Any]:
        """Activity log page, newest first, with the acting user's name."""
        conditions = []
        if action_type:
            conditions.append(UserActivityLog.action_type == action_type)
        if user_id is not None:
            conditions.append(UserActivityLog.user_id == user_id)

        total = await self._scalar_count(UserActivityLog, *conditions)
        result = await self.db.execute(
            select(UserActivityLog, User.username)
            .outerjoin(User, User.id == UserActivityLog.user_id)
            .where(*conditions)
            .order_by(desc(UserActivityLog.created_at), desc(UserActivityLog.id))
            .offset(skip)
            .limit(limit)
        )
        logs = [
            {
                "id": entry.id,
                "user_id": entry.user_id,
                "username": username,
                "action_type": entry.action_type,
                "details": entry.details,
                "ip_address": entry.ip_address,
                "created_at": entry.created_at,
            }
            for entry, username in result.all()
        ]
        return {"logs": logs, "total": total, "skip": skip, "limit": limit}
