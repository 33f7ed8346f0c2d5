# ================================================================
# services/cache_service.py — Best-effort Redis cache invalidation
# ================================================================
import logging
from typing import Optional

import redis

from core.config import settings

logger = logging.getLogger(__name__)


class CacheService:
    """
    Deletes cached views of workspaces and funnels after they change.

    Every method is best-effort: Redis failures are logged and reported as
    False, never raised. A service built without a client does nothing.
    """

    def __init__(self, client: Optional[redis.Redis] = None):
        self.client = client

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def invalidate(self, key: str) -> bool:
        if not self.enabled:
            return True
        try:
            self.client.delete(key)
            return True
        except redis.RedisError as e:
            logger.warning(f"⚠️ Failed to invalidate cache key {key}: {e}")
            return False

    def invalidate_pattern(self, pattern: str) -> bool:
        if not self.enabled:
            return True
        try:
            keys = list(self.client.scan_iter(match=pattern, count=500))
            if keys:
                self.client.delete(*keys)
            return True
        except redis.RedisError as e:
            logger.warning(f"⚠️ Failed to invalidate cache pattern {pattern}: {e}")
            return False

    # ------------------------
    # Scoped helpers
    # ------------------------
    def invalidate_workspace_cache(self, workspace_id: int) -> bool:
        return self.invalidate_pattern(f"*workspace:{workspace_id}*")

    def invalidate_user_workspaces_cache(self, user_id: int) -> bool:
        return self.invalidate(f"user:{user_id}:workspaces")

    def invalidate_workspace_funnels(self, workspace_id: int) -> bool:
        return self.invalidate(f"workspace:{workspace_id}:funnels:all")

    def invalidate_funnel_cache(self, funnel_id: int) -> bool:
        return self.invalidate_pattern(f"*funnel:{funnel_id}*")


# One client per process; redis-py pools connections inside it
_redis_client: Optional[redis.Redis] = None


def get_cache_service() -> CacheService:
    """
    Cache service over the shared Redis client.

    Disabled when REDIS_URL is unset or cannot be parsed, so a bad cache
    setting never stops an expiration run.
    """
    global _redis_client
    if not settings.REDIS_URL:
        logger.info("🗄️ REDIS_URL not set — cache invalidation disabled.")
        return CacheService()

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        except (ValueError, redis.RedisError) as e:
            logger.warning(f"⚠️ Invalid REDIS_URL, cache invalidation disabled: {e}")
            return CacheService()
    return CacheService(_redis_client)


def close_cache_client() -> None:
    """Release the shared Redis connection pool (application shutdown)."""
    global _redis_client
    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None
