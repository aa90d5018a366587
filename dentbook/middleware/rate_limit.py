"""Rate limiting middleware for public booking endpoints.

Limits:
- Appointment creation and wizard submission (slot squatting)
- Referral code checks (code enumeration)
- Confirm/cancel links (token enumeration)

Uses in-memory storage by default. For production with multiple workers,
configure a Redis backend via the RATE_LIMIT_STORAGE_URL environment variable.
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Protocol

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Configuration for a rate limit rule."""

    requests: int  # Number of allowed requests
    window_seconds: int  # Time window in seconds
    key_func: Callable[[Request], str] | None = None  # Custom key function


@dataclass
class _Window:
    """Request count inside one fixed window."""

    started: float
    count: int = 0


DEFAULT_RATE_LIMITS: dict[tuple[str, str], RateLimitConfig] = {
    ("POST", "/api/v1/booking/appointments"): RateLimitConfig(
        requests=10, window_seconds=3600  # 10 per hour
    ),
    ("POST", "/api/v1/booking/wizard/submit"): RateLimitConfig(
        requests=10, window_seconds=3600
    ),
    ("POST", "/api/v1/booking/referral-codes/check"): RateLimitConfig(
        requests=30, window_seconds=60
    ),
    ("GET", "/appointment-action"): RateLimitConfig(
        requests=20, window_seconds=60
    ),
    ("POST", "/api/v1/staff/appointments/{id}/cancel"): RateLimitConfig(
        requests=60, window_seconds=60
    ),
}

_UUID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE
)


def get_client_ip(request: Request) -> str:
    """Extract client IP address from request.

    Handles X-Forwarded-For header for reverse proxy scenarios.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # First IP in the chain is the original client
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"


def normalize_path(path: str) -> str:
    """Replace UUIDs in a path with ``{id}``."""
    return _UUID_PATTERN.sub("{id}", path)


class RateLimitStorage(Protocol):
    def check_and_increment(
        self, key: str, limit: int, window_seconds: int
    ) -> tuple[bool, int, int]: ...


class InMemoryRateLimitStorage:
    """In-memory rate limit storage for single-worker deployments.

    Windows older than `prune_after` seconds are dropped at most once per
    `prune_interval` seconds, so idle clients do not accumulate.
    """

    def __init__(self, prune_after: int = 3600, prune_interval: int = 300) -> None:
        self._windows: dict[str, _Window] = {}
        self._prune_after = prune_after
        self._prune_interval = prune_interval
        self._last_prune = time.time()

    def _prune(self, now: float) -> None:
        if now - self._last_prune < self._prune_interval:
            return
        cutoff = now - self._prune_after
        self._windows = {k: w for k, w in self._windows.items() if w.started >= cutoff}
        self._last_prune = now

    def check_and_increment(
        self, key: str, limit: int, window_seconds: int
    ) -> tuple[bool, int, int]:
        """Count a request against `key`.

        Returns:
            Tuple of (is_allowed, remaining_requests, reset_seconds)
        """
        now = time.time()
        self._prune(now)

        window = self._windows.get(key)
        if window is None or now - window.started > window_seconds:
            window = self._windows[key] = _Window(started=now)

        reset = int(window_seconds - (now - window.started))
        if window.count >= limit:
            return False, 0, reset

        window.count += 1
        return True, limit - window.count, reset


class RedisRateLimitStorage:
    """Redis-backed fixed-window storage for multi-worker deployments.

    Requires the ``redis`` extra.
    """

    def __init__(self, redis_url: str) -> None:
        import redis

        self.redis = redis.from_url(redis_url)

    def check_and_increment(
        self, key: str, limit: int, window_seconds: int
    ) -> tuple[bool, int, int]:
        now = int(time.time())
        window_key = f"ratelimit:{key}:{now // window_seconds}"

        pipe = self.redis.pipeline()
        pipe.incr(window_key)
        pipe.expire(window_key, window_seconds)
        current_count = pipe.execute()[0]

        reset = window_seconds - (now % window_seconds)
        if current_count <= limit:
            return True, limit - current_count, reset
        return False, 0, reset


def build_storage(storage_url: str | None) -> RateLimitStorage:
    """Pick the storage backend for a configured URL."""
    if storage_url:
        return RedisRateLimitStorage(storage_url)
    return InMemoryRateLimitStorage()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-client fixed-window limits on the configured endpoints.

    Requests over the limit get a 429 without reaching the route. Paths
    are matched after UUIDs are replaced with `{id}`; the query string is
    never part of the key or the log line, since it may carry a token.
    """

    def __init__(
        self,
        app,
        rate_limits: dict[tuple[str, str], RateLimitConfig] | None = None,
        storage: RateLimitStorage | None = None,
        enabled: bool = True,
    ) -> None:
        super().__init__(app)
        self.rate_limits = rate_limits or DEFAULT_RATE_LIMITS
        self.storage = storage or InMemoryRateLimitStorage()
        self.enabled = enabled

    def _rule_for(self, method: str, path: str) -> RateLimitConfig | None:
        return self.rate_limits.get((method, path)) or self.rate_limits.get(
            (method, normalize_path(path))
        )

    async def dispatch(self, request: Request, call_next) -> Response:
        if not self.enabled:
            return await call_next(request)

        method, path = request.method, request.url.path
        rule = self._rule_for(method, path)
        if rule is None:
            return await call_next(request)

        client_ip = get_client_ip(request)
        key = (
            rule.key_func(request)
            if rule.key_func
            else f"{method}:{normalize_path(path)}:{client_ip}"
        )
        allowed, remaining, reset = self.storage.check_and_increment(
            key, rule.requests, rule.window_seconds
        )
        headers = _limit_headers(rule, remaining, reset)

        if not allowed:
            logger.warning(f"Rate limit exceeded: {method} {normalize_path(path)} from {client_ip}")
            return JSONResponse(
                status_code=429,
                content={
                    "detail": "Too many requests. Please try again later.",
                    "retry_after": reset,
                },
                headers={"Retry-After": str(reset), **headers},
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response


def _limit_headers(rule: RateLimitConfig, remaining: int, reset: int) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(rule.requests),
        "X-RateLimit-Remaining": str(remaining),
        "X-RateLimit-Reset": str(reset),
    }
