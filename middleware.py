"""
TikSound - Rate Limiting Middleware

One extraction per client per window. Downloads and health checks are free.
"""

import threading
import time
from collections import defaultdict

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from constants import MSG_RATE_LIMITED, RATE_LIMIT_REQUESTS, RATE_LIMIT_WINDOW, RATE_LIMITED_PATHS


# In-memory rate limiting store: {ip: [timestamps]}
_rate_limit_store: dict[str, list[float]] = defaultdict(list)
_rate_limit_lock = threading.Lock()
_rate_limit_last_cleanup = 0.0


def _get_client_ip(request: Request) -> str:
    """Get client IP, respecting X-Forwarded-For for reverse proxies."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _check_rate_limit(
    ip: str,
    limit: int = RATE_LIMIT_REQUESTS,
    window: int = RATE_LIMIT_WINDOW,
    now: float | None = None,
) -> tuple[bool, int]:
    """Check if IP is within rate limit. Returns (allowed, remaining)."""
    global _rate_limit_last_cleanup
    if now is None:
        now = time.time()
    window_start = now - window

    with _rate_limit_lock:
        # Clean old entries
        _rate_limit_store[ip] = [t for t in _rate_limit_store[ip] if t > window_start]

        # Periodic cleanup of stale IPs to avoid unbounded growth
        if now - _rate_limit_last_cleanup > window:
            stale_ips = [
                addr for addr, timestamps in _rate_limit_store.items()
                if not timestamps or max(timestamps) <= window_start
            ]
            for addr in stale_ips:
                _rate_limit_store.pop(addr, None)
            _rate_limit_last_cleanup = now

        current_count = len(_rate_limit_store[ip])
        if current_count >= limit:
            return False, 0

        _rate_limit_store[ip].append(now)
        return True, limit - current_count - 1


def reset_rate_limits() -> None:
    """Forget every client. Used by tests and nothing else."""
    global _rate_limit_last_cleanup
    with _rate_limit_lock:
        _rate_limit_store.clear()
        _rate_limit_last_cleanup = 0.0


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject extraction requests from clients that are over their allowance."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path not in RATE_LIMITED_PATHS:
            return await call_next(request)

        client_ip = _get_client_ip(request)
        allowed, remaining = _check_rate_limit(client_ip)

        if not allowed:
            return JSONResponse(
                status_code=429,
                content={"status": "error", "message": MSG_RATE_LIMITED},
                headers={
                    "Retry-After": str(RATE_LIMIT_WINDOW),
                    "X-RateLimit-Limit": str(RATE_LIMIT_REQUESTS),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(int(time.time() + RATE_LIMIT_WINDOW))
                }
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(RATE_LIMIT_REQUESTS)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response
