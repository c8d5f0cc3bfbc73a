"""
Rate limiting middleware using a fixed hourly window per client IP
Counts in Redis when available, in memory otherwise
"""
import time
import logging
from typing import Dict, Optional, Tuple

import redis
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ..exceptions import ErrorResponse
from ..logging_config import get_request_id

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Limit each client IP to `limit` requests per window on paths under `prefix`
    """

    def __init__(
        self,
        app,
        limit: int = 1000,
        window_seconds: int = 3600,
        prefix: str = "/api",
        redis_client: Optional[redis.Redis] = None,
        trust_proxy: bool = False,
    ):
        super().__init__(app)
        self.limit = limit
        self.window_seconds = window_seconds
        self.prefix = prefix
        self.redis_client = redis_client
        self.trust_proxy = trust_proxy

        # identifier -> (window start, count); only the current window is kept
        self.memory_windows: Dict[str, Tuple[int, int]] = {}
        self._memory_window_start: Optional[int] = None

    def _get_rate_limit_key(self, identifier: str, window_start: int) -> str:
        return f"ratelimit:{identifier}:{window_start}"

    def client_ip(self, request: Request) -> str:
        """
        Address the request came from

        Behind a reverse proxy the socket peer is the proxy itself, so with
        `trust_proxy` the left-most X-Forwarded-For entry is used instead.
        """
        if self.trust_proxy:
            forwarded = request.headers.get("X-Forwarded-For", "")
            first_hop = forwarded.split(",")[0].strip()
            if first_hop:
                return first_hop
            real_ip = request.headers.get("X-Real-IP", "").strip()
            if real_ip:
                return real_ip
        return request.client.host if request.client else "unknown"

    def _hit_memory(self, identifier: str, window_start: int) -> int:
        if window_start != self._memory_window_start:
            self.memory_windows = {
                key: entry for key, entry in self.memory_windows.items() if entry[0] >= window_start
            }
            self._memory_window_start = window_start
        start, count = self.memory_windows.get(identifier, (window_start, 0))
        if start != window_start:
            start, count = window_start, 0
        count += 1
        self.memory_windows[identifier] = (start, count)
        return count

    def _hit_redis(self, identifier: str, window_start: int) -> int:
        key = self._get_rate_limit_key(identifier, window_start)
        pipe = self.redis_client.pipeline()
        pipe.incr(key)
        pipe.expire(key, self.window_seconds)
        count, _ = pipe.execute()
        return int(count)

    def hit(self, identifier: str, now: Optional[float] = None) -> Tuple[bool, int, int]:
        """
        Count one request for `identifier`

        Returns:
            Tuple of (allowed, remaining, reset_after_seconds)
        """
        now = int(now if now is not None else time.time())
        window_start = now - (now % self.window_seconds)

        count = None
        if self.redis_client is not None:
            try:
                count = self._hit_redis(identifier, window_start)
            except redis.RedisError as e:
                logger.warning(f"Redis rate limit check failed: {e}, falling back to in-memory")
        if count is None:
            count = self._hit_memory(identifier, window_start)

        reset_after = window_start + self.window_seconds - now
        return count <= self.limit, max(0, self.limit - count), reset_after

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(self.prefix):
            return await call_next(request)

        client_host = self.client_ip(request)
        allowed, remaining, reset_after = self.hit(f"ip:{client_host}")

        if not allowed:
            logger.warning(f"Rate limit exceeded for {client_host} on {request.method} {request.url.path}")
            error_response = ErrorResponse.create(
                message="Too many requests from this IP, please try again in an hour!",
                code="RATE_LIMITED",
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                request_id=get_request_id(),
                details={"limit": self.limit, "retry_after": reset_after},
            )
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content=error_response,
                headers={
                    "X-RateLimit-Limit": str(self.limit),
                    "X-RateLimit-Remaining": "0",
                    "Retry-After": str(reset_after),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response
