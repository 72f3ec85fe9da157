"""
User activity logging and search history recording.
"""
from typing import Optional, Union
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from core.logging import get_logger
from models.models import UserActivityLog, SearchHistory, User

logger = get_logger("activity")


def client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None:
        return None
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()[:45]
    return request.client.host[:45] if request.client else None


class ActivityService:
    """Appends rows to the activity and search logs; the caller commits."""

    def __init__(self, db: Union[Session, AsyncSession]):
        self.db = db

    def log_activity(self, user: Optional[User], action_type: str, details: Optional[str] = None,
                     request: Optional[Request] = None) -> UserActivityLog:
        entry = UserActivityLog(
            user_id=user.id if user else None,
            action_type=action_type,
            details=details,
            ip_address=client_ip(request),
        )
        self.db.add(entry)
        logger.info("User activity", action_type=action_type, user_id=entry.user_id, details=details)
        return entry

    def log_search(self, user: Optional[User], query: str, results_count: Optional[int] = None) -> SearchHistory:
        entry = SearchHistory(
            user_id=user.id if user else None,
            search_query=query[:255],
            results_count=results_count,
        )
        self.db.add(entry)
        return entry
