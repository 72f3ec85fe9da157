"""
Helpers for YouTube-hosted tutorials and remote book covers.
"""
import re
from typing import Optional
from urllib.parse import urlparse, parse_qs

_YOUTUBE_URL_RE = re.compile(r"(?:youtube\.com/(?:.*v=|embed/|v/)|youtu\.be/)([A-Za-z0-9_-]{11})")
_VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")
_ISO_DURATION_RE = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")
_AMAZON_ASIN_RE = re.compile(r"/dp/([A-Z0-9]{10})")

THUMBNAIL_QUALITIES = {
    "default": "default",
    "mq": "mqdefault",
    "hq": "hqdefault",
    "sd": "sddefault",
    "maxres": "maxresdefault",
}


def extract_youtube_id(value: Optional[str]) -> Optional[str]:
    """
    Extract an 11-character video id from a watch/embed/short URL or a bare id.

    >>> extract_youtube_id("https://youtu.be/dQw4w9WgXcQ")
    'dQw4w9WgXcQ'
    """
    if not value:
        return None

    value = value.strip()
    match = _YOUTUBE_URL_RE.search(value)
    if match:
        return match.group(1)

    parsed = urlparse(value)
    if parsed.scheme and parsed.netloc:
        candidate = parse_qs(parsed.query).get("v", [None])[0]
        if candidate and _VIDEO_ID_RE.match(candidate):
            return candidate

    if _VIDEO_ID_RE.match(value):
        return value

    return None


def build_embed_url(video_id: str) -> str:
    return f"https://www.youtube.com/embed/{video_id}"


def get_thumbnail_url(video_id: str, quality: str = "hq") -> str:
    return f"https://i.ytimg.com/vi/{video_id}/{THUMBNAIL_QUALITIES.get(quality, 'hqdefault')}.jpg"


def format_duration(seconds: Optional[int]) -> str:
    """Render seconds as m:ss, or h:mm:ss from one hour up."""
    if not seconds or seconds <= 0:
        return "0:00"

    seconds = int(seconds)
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def parse_iso8601_duration(duration: Optional[str]) -> int:
    """Convert a YouTube API duration such as PT1H2M3S to seconds (0 when unparseable)."""
    if not duration:
        return 0
    match = _ISO_DURATION_RE.match(duration.strip())
    if not match:
        return 0
    hours, minutes, seconds = (int(part or 0) for part in match.groups())
    return hours * 3600 + minutes * 60 + seconds


def extract_amazon_cover(url: Optional[str]) -> Optional[str]:
    """Build the Amazon product image URL from a product page link's ASIN."""
    if not url or "amazon." not in url:
        return None
    match = _AMAZON_ASIN_RE.search(url)
    if not match:
        return None
    return f"https://images-na.ssl-images-amazon.com/images/P/{match.group(1)}.01.L.jpg"
