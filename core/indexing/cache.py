"""Best-effort cache of the last indexed commit per repository.

Losing or corrupting an entry only costs redundant work; the durable store
remains the source of truth, so cache failures are logged and swallowed.
"""

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = structlog.get_logger(__name__)


def cursor_key(org_name: str, repo_name: str) -> str:
    """Cache key holding the last indexed commit URL of a repository."""
    return f"lastIndexedCommit_{org_name}_{repo_name}"


class CursorCache:
    """Redis-backed string cache.

    Attributes:
        default_ttl: Expiry applied when ``set`` is called without one.
    """

    def __init__(self, redis: Redis, default_ttl: int | None = None) -> None:
        """Initialize the cache.

        Args:
            redis: Redis client created with ``decode_responses=True``.
            default_ttl: Default expiry in seconds, None for no expiry.
        """
        self._redis = redis
        self.default_ttl = default_ttl
        self._logger = logger.bind(component="cursor_cache")

    async def get(self, key: str) -> str | None:
        """Get a value, or None if absent or the cache is unavailable."""
        try:
            value = await self._redis.get(key)
        except RedisError as e:
            self._logger.warning("cache_get_failed", key=key, error=str(e))
            return None
        if isinstance(value, bytes):
            return value.decode()
        return value

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        """Set a value, optionally with an expiry in seconds."""
        expiry = ttl if ttl is not None else self.default_ttl
        try:
            if expiry:
                await self._redis.set(key, value, ex=expiry)
            else:
                await self._redis.set(key, value)
        except RedisError as e:
            self._logger.warning("cache_set_failed", key=key, error=str(e))

    async def delete(self, key: str) -> None:
        """Delete a value."""
        try:
            await self._redis.delete(key)
        except RedisError as e:
            self._logger.warning("cache_delete_failed", key=key, error=str(e))
