import logging
from typing import Optional

import redis

logger = logging.getLogger(__name__)


class PlanCache:
    """
    TTL cache of user -> plan id, kept in Redis.
    Without a Redis client every lookup misses. Redis failures are logged and
    treated as misses so a cache outage never blocks an entitlement check.
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None, ttl: int = 300):
        self.redis = redis_client
        self.ttl = ttl

    @staticmethod
    def _key(user_id: str) -> str:
        return f"user:{user_id}:plan"

    def get(self, user_id: str) -> Optional[str]:
        if self.redis is None:
            return None
        try:
            return self.redis.get(self._key(user_id))
        except redis.RedisError as e:
            logger.warning(f"Plan cache read failed for {user_id}: {e}")
            return None

    def set(self, user_id: str, plan_id: str):
        if self.redis is None:
            return
        try:
            self.redis.setex(self._key(user_id), self.ttl, plan_id)
        except redis.RedisError as e:
            logger.warning(f"Plan cache write failed for {user_id}: {e}")

    def invalidate(self, user_id: str):
        if self.redis is None:
            return
        try:
            self.redis.delete(self._key(user_id))
        except redis.RedisError as e:
            # the entry still expires after ttl seconds
            logger.warning(f"Plan cache invalidation failed for {user_id}: {e}")
