from fastapi import Request, Response
import redis.asyncio as redis
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter
from core.config import settings

import logging

logger = logging.getLogger(__name__)

_session_token_limiter = RateLimiter(
    times=settings.RTC_TOKEN_RATE_LIMIT_TIMES,
    seconds=settings.RTC_TOKEN_RATE_LIMIT_SECONDS,
)

async def init_redis():
    try:
        redis_conn = redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
        # Ping to check connection
        await redis_conn.ping()
        await FastAPILimiter.init(redis_conn)
        logger.info("✅ Redis Limiter initialized")
        return redis_conn
    except Exception as e:
        logger.warning(f"⚠️ Redis not available at {settings.REDIS_URL}: {e}. Rate limiting will be disabled.")
        return None

async def session_token_rate_limit(request: Request, response: Response):
    """Throttle credential issuance per client; no-op while Redis is unavailable"""
    if FastAPILimiter.redis is None:
        return
    await _session_token_limiter(request, response)
