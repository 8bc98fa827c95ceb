"""Redis client configuration and utilities."""

from typing import cast

import redis
import structlog

from embassy.config import settings

logger = structlog.get_logger(__name__)

# Global Redis client instance
_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """
    Get or create Redis client instance.

    Returns:
        Redis client instance
    """
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            username=settings.redis_username,
            password=settings.redis_password,
            decode_responses=settings.redis_decode_responses,
            socket_connect_timeout=5,
            socket_keepalive=True,
            health_check_interval=30,
        )

    return _redis_client


async def check_redis_connection() -> bool:
    """
    Check if Redis connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        client = get_redis_client()
        client.ping()
        return True
    except Exception:
        return False


def close_redis_connection() -> None:
    """Close Redis connection."""
    global _redis_client

    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None


class RateLimiter:
    """Fixed-window request counter kept in Redis."""

    def __init__(self, redis_client: redis.Redis):
        """Initialize rate limiter with Redis client."""
        self.redis = redis_client

    def check_rate_limit(
        self,
        key: str,
        limit: int,
        window: int = 60,
    ) -> bool:
        """
        Count one request against ``key`` and report whether it fits the limit.

        Args:
            key: Rate limit key (e.g., actor id)
            limit: Maximum number of requests per window
            window: Time window in seconds

        Returns:
            True if within limit, False if exceeded. Redis errors fail open.
        """
        try:
            current = cast(int, self.redis.incr(key))
            if current == 1:
                self.redis.expire(key, window)
            return current <= limit
        except redis.RedisError as e:
            logger.warning("rate_limit_check_failed", key=key, error=str(e))
            return True
