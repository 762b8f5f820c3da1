"""
Rate limiting.

Two layers share the same key material (client IP, route, user-agent hash):
- ``limiter``: slowapi Limiter for per-route decorators (e.g. login).
- ``request_limiter``: fixed-window counter consulted by RateLimitingMiddleware
  for every API request. It fails open when the counter backend errors.
"""
import logging
import time
from dataclasses import dataclass
from typing import Optional

from limits import RateLimitItemPerSecond
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from teamspark.core.config import settings
from teamspark.core.security import hash_user_agent

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or "unknown"
    return get_remote_address(request) or "unknown"


def rate_limit_key(request: Request) -> str:
    return ":".join(_key_parts(request))


def _key_parts(request: Request):
    return (
        get_client_ip(request),
        request.url.path,
        hash_user_agent(request.headers.get("user-agent")),
    )


limiter = Limiter(
    key_func=rate_limit_key,
    storage_uri=settings.rate_limit.storage_uri,
    enabled=settings.rate_limit.enabled,
)


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset: int


class RequestRateLimiter:
    """Fixed-window request counter keyed by (ip, route, user-agent hash)."""

    def __init__(self, max_requests: int, window_seconds: int, storage_uri: str = "memory://"):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.item = RateLimitItemPerSecond(max_requests, window_seconds)
        self.strategy = FixedWindowRateLimiter(storage_from_string(storage_uri))

    def check(self, request: Request, now: Optional[float] = None) -> RateLimitResult:
        identifiers = _key_parts(request)
        current = now if now is not None else time.time()
        try:
            allowed = self.strategy.hit(self.item, *identifiers)
            stats = self.strategy.get_window_stats(self.item, *identifiers)
        except Exception as e:
            # Fail open: an unavailable counter store must not take the API down
            logger.warning(f"Rate limit backend error, allowing request: {e}")
            return RateLimitResult(
                allowed=True,
                limit=self.max_requests,
                remaining=self.max_requests,
                reset=int(current) + self.window_seconds,
            )
        return RateLimitResult(
            allowed=allowed,
            limit=self.max_requests,
            remaining=max(int(stats.remaining), 0),
            reset=int(stats.reset_time),
        )


request_limiter = RequestRateLimiter(
    max_requests=settings.rate_limit.requests_per_window,
    window_seconds=settings.rate_limit.window_seconds,
    storage_uri=settings.rate_limit.storage_uri,
)
