# sessionshare/middleware/rate_limiter.py
# Per-client rate limiting for the share API
# In-memory sliding window counter, one instance per worker process

import time
import logging
from collections import defaultdict
from typing import Dict, Tuple
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

HEALTH_PATHS = ("/health", "/health/live", "/health/ready")


class SlidingWindowCounter:
    """
    Sliding window rate limiter.
    Weights the previous window's count by how much of it still overlaps.
    """

    def __init__(self, window_size: int = 60, max_requests: int = 100):
        self.window_size = window_size  # seconds
        self.max_requests = max_requests
        # key -> (prev_count, curr_count, window_index)
        self._counters: Dict[str, Tuple[int, int, float]] = defaultdict(lambda: (0, 0, 0.0))

    def is_allowed(self, key: str, now: float = None) -> Tuple[bool, int]:
        """
        Count a request for key.
        Returns (is_allowed, remaining_requests).
        """
        now = time.time() if now is None else now
        prev_count, curr_count, window_index = self._counters[key]
        current_window = now // self.window_size

        if window_index < current_window - 1:
            prev_count, curr_count = 0, 1
        elif window_index < current_window:
            prev_count, curr_count = curr_count, 1
        else:
            curr_count += 1
        window_index = current_window

        weight = (now % self.window_size) / self.window_size
        weighted_count = prev_count * (1 - weight) + curr_count

        self._counters[key] = (prev_count, curr_count, window_index)

        remaining = max(0, int(self.max_requests - weighted_count))
        return weighted_count <= self.max_requests, remaining

    def cleanup_old_entries(self, max_age: int = 300, now: float = None):
        """Remove entries older than max_age seconds."""
        now = time.time() if now is None else now
        current_window = now // self.window_size
        stale = [
            key for key, (_, _, window_index) in self._counters.items()
            if current_window - window_index > max_age // self.window_size
        ]
        for key in stale:
            del self._counters[key]


def client_key(request: Request) -> str:
    """Client identifier: first proxy-forwarded IP, else the peer address."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    if request.client:
        return request.client.host
    return "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Separate limits for /api/ endpoints and everything else.
    Health probes are never limited.
    """

    def __init__(self, app, api_limit: int = 120, general_limit: int = 300):
        super().__init__(app)
        self.api_limiter = SlidingWindowCounter(window_size=60, max_requests=api_limit)
        self.general_limiter = SlidingWindowCounter(window_size=60, max_requests=general_limit)
        self._last_cleanup = time.time()

    async def dispatch(self, request: Request, call_next):
        if request.url.path in HEALTH_PATHS:
            return await call_next(request)

        # Periodic cleanup (every 5 minutes)
        now = time.time()
        if now - self._last_cleanup > 300:
            self.api_limiter.cleanup_old_entries()
            self.general_limiter.cleanup_old_entries()
            self._last_cleanup = now

        key = client_key(request)
        limiter = self.api_limiter if request.url.path.startswith("/api/") else self.general_limiter
        is_allowed, remaining = limiter.is_allowed(key)

        if not is_allowed:
            logger.warning(f"Rate limit exceeded for {key} on {request.url.path}")
            return JSONResponse(
                status_code=429,
                content={
                    "error": {
                        "code": "RATE_LIMIT_EXCEEDED",
                        "message": "Too many requests. Please slow down.",
                        "details": {"retry_after": limiter.window_size},
                    }
                },
                headers={"Retry-After": str(limiter.window_size), "X-RateLimit-Remaining": "0"}
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Limit"] = str(limiter.max_requests)
        return response
