"""
Small text and time helpers shared by routers and services.
"""
import re
from datetime import datetime, timezone
from typing import Optional


_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def slugify(name: str) -> str:
    """Lowercase, collapse non-alphanumeric runs into '-', strip edge dashes."""
    return _NON_ALNUM_RE.sub("-", name.lower()).strip("-")


def username_from_display_name(display_name: Optional[str], email: str, max_length: int = 50) -> str:
    """Derive a username from a display name, falling back to the email's local part."""
    username = _NON_ALNUM_RE.sub("_", (display_name or "").lower()).strip("_")[:max_length]
    if not username:
        username = email.split("@", 1)[0][:max_length]
    return username


def format_time_ago(moment: datetime, now: Optional[datetime] = None) -> str:
    """
    Human readable distance between `moment` and `now`.

    Buckets: under a minute, minutes, hours, days (under 30), months (under 365), years.
    """
    now = now or utcnow()
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)

    seconds = int((now - moment).total_seconds())
    if seconds < 60:
        return "Just now"

    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes} minutes ago"

    hours = minutes // 60
    if hours < 24:
        return f"{hours} hours ago"

    days = hours // 24
    if days < 30:
        return f"{days} days ago"
    if days < 365:
        return f"{days // 30} months ago"
    return f"{days // 365} years ago"
