"""FastAPI middleware for request processing.

Middleware components:
- Rate limiting
- Request logging
"""

from .rate_limiting import RateLimiter, RateLimitMiddleware
from .request_logging import RequestLoggingMiddleware

__all__ = [
    "RateLimitMiddleware",
    "RateLimiter",
    "RequestLoggingMiddleware",
]
