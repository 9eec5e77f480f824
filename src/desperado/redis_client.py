"""Shared Redis client for realtime push and rate limiting.

Redis is optional: when it is unreachable at startup the API keeps
serving, notifications are only persisted and rate limiting is off.
"""

import redis.asyncio as redis
import structlog

logger = structlog.get_logger()

_client: redis.Redis | None = None


async def init_redis(url: str, max_connections: int = 50) -> redis.Redis | None:
    """Connect and ping. Leaves the client unset if Redis does not answer."""
    global _client  # noqa: PLW0603
    client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=max_connections,
    )
    try:
        await client.ping()
    except (redis.ConnectionError, redis.TimeoutError, OSError) as exc:
        logger.warning("redis_unavailable", error=str(exc))
        await client.aclose()
        return None
    _client = client
    return _client


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis:
    """The connected client. Raises RuntimeError when running without Redis."""
    if _client is None:
        msg = "Redis is not connected"
        raise RuntimeError(msg)
    return _client


def get_redis_optional() -> redis.Redis | None:
    """FastAPI dependency: the client, or None when Redis is absent."""
    return _client
