"""Rate limiting middleware for the JSON API.

Uses a sliding window per client address with in-memory storage, so the
counters are per process.
"""

import time
from dataclasses import dataclass, field
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from novelhub.api.exceptions import RateLimitError, failure_content
from novelhub.core.config import Settings


@dataclass
class RateLimitEntry:
    """Request timestamps for a single client inside the current window."""

    requests: list[float] = field(default_factory=list)


class RateLimiter:
    """In-memory rate limiter using sliding window algorithm."""

    def __init__(self, limit: int = 100, window_seconds: int = 900):
        """Initialize rate limiter.

        Args:
            limit: Requests allowed per window
            window_seconds: Time window for rate limiting (default: 15 minutes)
        """
        self.limit = limit
        self.window_seconds = window_seconds
        self._entries: dict[str, RateLimitEntry] = {}
        self._last_sweep = 0.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimiter":
        return cls(
            limit=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )

    def _sweep(self, window_start: float) -> None:
        """Forget clients with no requests left inside the window."""
        idle = [
            key
            for key, entry in self._entries.items()
            if not entry.requests or entry.requests[-1] <= window_start
        ]
        for key in idle:
            del self._entries[key]

    def is_allowed(self, key: str, now: float | None = None) -> tuple[bool, dict[str, str]]:
        """Check if request is allowed under rate limit.

        Args:
            key: Client identifier
            now: Current timestamp (defaults to ``time.time()``)

        Returns:
            Tuple of (is_allowed, headers_dict with rate limit info)
        """
        now = time.time() if now is None else now
        window_start = now - self.window_seconds

        # At most one full sweep per window
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(window_start)
            self._last_sweep = now

        entry = self._entries.pop(key, None) or RateLimitEntry()
        # Remove expired requests
        entry.requests = [ts for ts in entry.requests if ts > window_start]

        remaining = self.limit - len(entry.requests)
        # The window frees a slot when the oldest request ages out
        oldest = entry.requests[0] if entry.requests else now
        reset_time = oldest + self.window_seconds

        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(max(0, remaining)),
            "X-RateLimit-Reset": str(int(reset_time)),
        }

        if remaining <= 0:
            if entry.requests:
                self._entries[key] = entry
            headers["Retry-After"] = str(max(1, int(reset_time - now)))
            return False, headers

        # Record this request
        entry.requests.append(now)
        self._entries[key] = entry
        headers["X-RateLimit-Remaining"] = str(remaining - 1)
        return True, headers


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Apply a per-client request limit to every path under ``prefix``."""

    def __init__(self, app: Callable, limiter: RateLimiter, prefix: str = "/api"):
        super().__init__(app)
        self.limiter = limiter
        self.prefix = prefix

    @staticmethod
    def client_key(request: Request) -> str:
        return request.client.host if request.client else "unknown"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request with rate limiting."""
        path = request.url.path
        if path != self.prefix and not path.startswith(self.prefix + "/"):
            return await call_next(request)

        is_allowed, headers = self.limiter.is_allowed(self.client_key(request))

        if not is_allowed:
            error = RateLimitError(retry_after=int(headers["Retry-After"]))
            return JSONResponse(
                status_code=error.status_code,
                content=failure_content(error.message),
                headers=headers,
            )

        # Process request and add rate limit headers to response
        response = await call_next(request)
        for key, value in headers.items():
            response.headers[key] = value

        return response
