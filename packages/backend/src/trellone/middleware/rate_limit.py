"""Rate limiting middleware — Redis-based fixed window per minute.

Learn: Each IP gets a counter key like "trellone:rl:{ip}:{bucket}:{minute}".
Login and register get a stricter limit to slow down credential
stuffing and sign-up spam.

Skips rate limiting when Redis is unavailable (e.g., in tests).
"""

import time

import structlog
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from trellone.realtime.pubsub import get_redis, redis_available

logger = structlog.get_logger()

AUTH_PATHS = ("/api/v1/auth/login", "/api/v1/auth/register")


def bucket_for(path: str) -> str:
    return "auth" if path.startswith(AUTH_PATHS) else "api"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-based rate limiting per IP per minute."""

    def __init__(self, app, default_rpm: int = 100, auth_rpm: int = 10):
        super().__init__(app)
        self.default_rpm = default_rpm
        self.auth_rpm = auth_rpm

    async def dispatch(self, request: Request, call_next) -> Response:
        if not redis_available():
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        bucket = bucket_for(request.url.path)
        rpm = self.auth_rpm if bucket == "auth" else self.default_rpm

        window = int(time.time() // 60)
        key = f"trellone:rl:{client_ip}:{bucket}:{window}"

        redis = get_redis()
        try:
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, 120)  # outlives the window
        except RedisError as e:
            # Redis hiccup — don't block the request
            logger.warning("ratelimit.redis_error", error=str(e))
            return await call_next(request)

        if count > rpm:
            logger.info("ratelimit.exceeded", ip=client_ip, bucket=bucket)
            return JSONResponse(
                status_code=429,
                content={"message": "Rate limit exceeded. Try again later."},
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, rpm - count))
        return response
