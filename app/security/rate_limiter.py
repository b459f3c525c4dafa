"""Ingestion rate limiting"""

from typing import Optional
import logging

from redis import Redis

from app.config import settings

logger = logging.getLogger(__name__)


class IngestionRateLimiter:
    """
    Fixed-window limit on ingestion requests per user, stored in Redis

    Each ingestion spends embedding quota, so uploads are capped per user.
    If Redis is unreachable the limiter fails open.
    """

    def __init__(
        self,
        redis_client: Optional[Redis] = None,
        limit: Optional[int] = None,
        window: int = 60
    ):
        self._redis = redis_client
        self.limit = limit or settings.RATE_LIMIT_INGESTIONS_PER_MINUTE
        self.window = window

    @property
    def redis(self) -> Redis:
        if self._redis is None:
            self._redis = Redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=5
            )
        return self._redis

    def _key(self, user_id: str) -> str:
        return f"rate_limit:ingest:{user_id}"

    def allow_request(self, user_id: str) -> bool:
        """
        Record an ingestion attempt and check it against the limit

        Args:
            user_id: Requesting user

        Returns:
            True if the request is allowed
        """
        key = self._key(user_id)

        try:
            count = self.redis.incr(key)
            if count == 1:
                self.redis.expire(key, self.window)

            if count > self.limit:
                logger.warning(f"Ingestion rate limit exceeded for {user_id}: {count}/{self.limit}")
                return False
            return True

        except Exception as e:
            logger.error(f"Rate limiter error: {str(e)}")
            # Fail open - allow request if Redis unavailable
            return True

    def get_retry_after(self, user_id: str) -> int:
        """Seconds until the user's window resets"""
        try:
            ttl = self.redis.ttl(self._key(user_id))
            return max(0, int(ttl)) if ttl is not None else 0
        except Exception:
            return 0


def get_rate_limiter() -> IngestionRateLimiter:
    """Rate limiter dependency"""
    return ingestion_rate_limiter


ingestion_rate_limiter = IngestionRateLimiter()
