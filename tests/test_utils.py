"""
Unit tests for the text, YouTube, file and date helpers.
"""
import base64
from datetime import datetime, timedelta

import pytest
from starlette.requests import Request

from core.text_utils import slugify, username_from_display_name, format_time_ago
from core.youtube import (
    extract_youtube_id, build_embed_url, get_thumbnail_url, format_duration,
    parse_iso8601_duration, extract_amazon_cover
)
from core.file_utils import (
    decode_base64_payload, save_upload_bytes, resolve_upload_path, delete_file, validate_mime_type
)
from core.exceptions import PayloadTooLargeException
from core.file_utils import validate_file_size
from core.security import get_password_hash, verify_password
from core.rate_limiting import RateLimiter
from services.analytics_service import months_ago
from routers.courses import generate_validation_code


class TestSlugs:
    def test_slugify_collapses_separators(self):
        assert slugify("Web Development") == "web-development"
        assert slugify("  C++ & Rust!  ") == "c-rust"

    def test_username_from_display_name(self):
        assert username_from_display_name("Jane Doe", "jane@example.com") == "jane_doe"

    def test_username_falls_back_to_email(self):
        assert username_from_display_name("!!!", "owner@example.com") == "owner"
        assert username_from_display_name(None, "owner@example.com") == "owner"


class TestTimeAgo:
    NOW = datetime(2024, 6, 15, 12, 0, 0)

    @pytest.mark.parametrize("delta, expected", [
        (timedelta(seconds=30), "Just now"),
        (timedelta(minutes=5), "5 minutes ago"),
        (timedelta(hours=3), "3 hours ago"),
        (timedelta(days=2), "2 days ago"),
        (timedelta(days=65), "2 months ago"),
        (timedelta(days=800), "2 years ago"),
    ])
    def test_buckets(self, delta, expected):
        assert format_time_ago(self.NOW - delta, now=self.NOW) == expected


class TestMonthsAgo:
    def test_plain_subtraction(self):
        assert months_ago(datetime(2024, 6, 15), 2) == datetime(2024, 4, 15)

    def test_crosses_year_boundary(self):
        assert months_ago(datetime(2024, 2, 10), 3) == datetime(2023, 11, 10)

    def test_clamps_to_month_end(self):
        assert months_ago(datetime(2024, 3, 31), 1) == datetime(2024, 2, 29)


class TestYouTube:
    @pytest.mark.parametrize("value", [
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "https://youtu.be/dQw4w9WgXcQ",
        "https://www.youtube.com/embed/dQw4w9WgXcQ",
        "https://www.youtube.com/watch?feature=share&v=dQw4w9WgXcQ",
        "dQw4w9WgXcQ",
    ])
    def test_extract_video_id(self, value):
        assert extract_youtube_id(value) == "dQw4w9WgXcQ"

    def test_extract_rejects_other_urls(self):
        assert extract_youtube_id("https://vimeo.com/123456") is None
        assert extract_youtube_id("") is None

    def test_embed_and_thumbnail_urls(self):
        assert build_embed_url("dQw4w9WgXcQ") == "https://www.youtube.com/embed/dQw4w9WgXcQ"
        assert get_thumbnail_url("dQw4w9WgXcQ") == "https://i.ytimg.com/vi/dQw4w9WgXcQ/hqdefault.jpg"
        assert get_thumbnail_url("dQw4w9WgXcQ", "maxres").endswith("/maxresdefault.jpg")

    def test_format_duration(self):
        assert format_duration(None) == "0:00"
        assert format_duration(65) == "1:05"
        assert format_duration(3725) == "1:02:05"

    def test_parse_iso8601_duration(self):
        assert parse_iso8601_duration("PT1H2M3S") == 3723
        assert parse_iso8601_duration("PT45S") == 45
        assert parse_iso8601_duration("garbage") == 0

    def test_amazon_cover(self):
        cover = extract_amazon_cover("https://www.amazon.com/Clean-Code/dp/0132350882/ref=sr_1_1")
        assert cover == "https://images-na.ssl-images-amazon.com/images/P/0132350882.01.L.jpg"
        assert extract_amazon_cover("https://example.com/dp/0132350882") is None


class TestFiles:
    def test_decode_data_url(self):
        payload = "data:image/png;base64," + base64.b64encode(b"png-bytes").decode()
        content, mime_type = decode_base64_payload(payload)
        assert content == b"png-bytes"
        assert mime_type == "image/png"

    def test_decode_rejects_invalid(self):
        with pytest.raises(ValueError):
            decode_base64_payload("not base64!!")

    def test_same_content_maps_to_same_file(self):
        first = save_upload_bytes(b"hello", "notes.txt", "text/plain")
        second = save_upload_bytes(b"hello", "notes.txt", "text/plain")
        assert first == second
        assert first.startswith("/uploads/")
        assert resolve_upload_path(first).read_bytes() == b"hello"

        assert delete_file(first) is True
        assert resolve_upload_path(first) is None

    def test_resolve_refuses_traversal(self):
        assert resolve_upload_path("/uploads/../../etc/passwd") is None
        assert resolve_upload_path("/etc/passwd") is None

    def test_size_and_mime_checks(self):
        assert validate_mime_type("application/pdf")
        assert not validate_mime_type("application/x-msdownload")
        assert not validate_mime_type(None)
        with pytest.raises(PayloadTooLargeException):
            validate_file_size(10 ** 12)


def test_password_hashing():
    hashed = get_password_hash("secret-password")
    assert verify_password("secret-password", hashed)
    assert not verify_password("wrong-password", hashed)


def test_validation_codes_are_unique_and_prefixed():
    codes = {generate_validation_code() for _ in range(50)}
    assert len(codes) == 50
    assert all(code.startswith("IYKE-") and len(code) == 17 for code in codes)


class TestRateLimiter:
    @staticmethod
    def _request(ip):
        return Request({"type": "http", "method": "GET", "path": "/", "headers": [], "client": (ip, 5000)})

    def test_expired_windows_are_dropped(self, monkeypatch):
        clock = [1000.0]
        monkeypatch.setattr("core.rate_limiting.time.time", lambda: clock[0])
        limiter = RateLimiter()

        limiter.is_allowed(self._request("10.0.0.1"), "vote")
        limiter.is_allowed(self._request("10.0.0.2"), "vote")
        assert len(limiter.storage) == 2

        clock[0] += 61
        allowed, info = limiter.is_allowed(self._request("10.0.0.3"), "vote")
        assert allowed is True
        assert list(limiter.storage) == ["vote_ip_10.0.0.3"]
        assert info["requests_remaining"] == 59

    def test_blocked_entries_survive_cleanup(self, monkeypatch):
        clock = [1000.0]
        monkeypatch.setattr("core.rate_limiting.time.time", lambda: clock[0])
        limiter = RateLimiter()
        request = self._request("10.0.0.9")

        for _ in range(10):
            assert limiter.is_allowed(request, "auth")[0] is True
        assert limiter.is_allowed(request, "auth")[0] is False

        clock[0] += 30
        assert limiter.cleanup_expired() == 0
        assert limiter.is_allowed(request, "auth")[0] is False
