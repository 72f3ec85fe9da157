"""
Rate limiting and input validation helpers for API protection.
"""
import time
from typing import Dict, Any, Optional
from collections import defaultdict
from fastapi import Request
from core.config import settings
from core.exceptions import RateLimitException
from core.logging import get_logger

logger = get_logger("security")


class RateLimiter:
    """In-memory fixed-window rate limiter with named policies."""

    def __init__(self):
        # {key: {"count": int, "window_start": float, "blocked_until": float}}
        self.storage: Dict[str, Dict[str, Any]] = defaultdict(lambda: {
            "count": 0,
            "window_start": time.time(),
            "blocked_until": 0
        })

        self.policies = {
            "default": {"requests": 100, "window": 60},
            "auth": {"requests": 10, "window": 60},
            "upload": {"requests": 50, "window": 3600},
            "vote": {"requests": 60, "window": 60},
            "comment": {"requests": 30, "window": 60},
            "admin": {"requests": 1000, "window": 60},
        }

        self.cleanup_interval = 60
        self._last_cleanup = time.time()

    def cleanup_expired(self, current_time: Optional[float] = None) -> int:
        """Drop entries whose window has ended and that are not blocked."""
        current_time = current_time or time.time()
        expired_keys = [
            key for key, data in self.storage.items()
            if current_time - data["window_start"] >= data.get("window", 3600)
            and data["blocked_until"] <= current_time
        ]
        for key in expired_keys:
            del self.storage[key]

        self._last_cleanup = current_time
        if expired_keys:
            logger.debug("Rate limit entries expired", count=len(expired_keys))
        return len(expired_keys)

    def _get_client_key(self, request: Request, user_id: Optional[int] = None) -> str:
        if user_id:
            return f"user_{user_id}"

        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            client_ip = forwarded_for.split(",")[0].strip()
        else:
            client_ip = request.client.host if request.client else "unknown"

        return f"ip_{client_ip}"

    def is_allowed(
        self,
        request: Request,
        policy_name: str = "default",
        user_id: Optional[int] = None,
        user_role: Optional[str] = None
    ) -> tuple[bool, Dict[str, Any]]:
        """Count this request against the policy window and report whether it may proceed."""
        if user_role == "admin":
            policy_name = "admin"

        if policy_name not in self.policies:
            policy_name = "default"

        policy = self.policies[policy_name]
        rate_key = f"{policy_name}_{self._get_client_key(request, user_id)}"

        current_time = time.time()
        if current_time - self._last_cleanup >= self.cleanup_interval:
            self.cleanup_expired(current_time)

        client_data = self.storage[rate_key]
        client_data["window"] = policy["window"]

        if client_data["blocked_until"] > current_time:
            return False, {
                "error": "Rate limit exceeded",
                "retry_after": int(client_data["blocked_until"] - current_time) or 1
            }

        if current_time - client_data["window_start"] >= policy["window"]:
            client_data["count"] = 0
            client_data["window_start"] = current_time
            client_data["blocked_until"] = 0

        if client_data["count"] >= policy["requests"]:
            window_end = client_data["window_start"] + policy["window"]
            client_data["blocked_until"] = window_end
            logger.warning("Rate limit exceeded", policy=policy_name, client=rate_key)
            return False, {
                "error": "Rate limit exceeded",
                "requests_per_window": policy["requests"],
                "window_seconds": policy["window"],
                "retry_after": int(window_end - current_time) or 1
            }

        client_data["count"] += 1

        return True, {
            "requests_remaining": policy["requests"] - client_data["count"],
            "window_reset": client_data["window_start"] + policy["window"]
        }


# Global rate limiter instance
rate_limiter = RateLimiter()


class SecurityValidator:
    """Validation for free-text user input such as comments and reviews."""

    DANGEROUS_PATTERNS = (
        '<script', '</script>', 'javascript:', 'vbscript:',
        'onload=', 'onerror=', 'onclick=', 'document.cookie',
    )

    @staticmethod
    def validate_user_input(text: str, max_length: int = 5000) -> tuple[bool, str]:
        if not text or not text.strip():
            return False, "Empty input not allowed"

        text_lower = text.lower()
        for pattern in SecurityValidator.DANGEROUS_PATTERNS:
            if pattern in text_lower:
                logger.warning("Potentially dangerous pattern detected", pattern=pattern)
                return False, "Input contains potentially dangerous content"

        if len(text) > max_length:
            return False, "Input text too long"

        return True, "Valid"


security_validator = SecurityValidator()


def check_rate_limit(
    request: Request,
    policy: str = "default",
    user_id: Optional[int] = None,
    user_role: Optional[str] = None
) -> Dict[str, Any]:
    """Raise 429 when the caller exhausted the policy; no-op when rate limiting is disabled."""
    if not settings.enable_rate_limiting:
        return {}

    allowed, info = rate_limiter.is_allowed(request, policy, user_id, user_role)
    if not allowed:
        raise RateLimitException(
            detail=info.get("error", "Rate limit exceeded"),
            retry_after=info.get("retry_after", 60)
        )
    return info
