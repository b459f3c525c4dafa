"""Test ingestion rate limiter"""

from app.security.rate_limiter import IngestionRateLimiter


class FakeRedis:
    def __init__(self):
        self.counts = {}
        self.expiries = {}

    def incr(self, key):
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    def expire(self, key, seconds):
        self.expiries[key] = seconds

    def ttl(self, key):
        return self.expiries.get(key, -2)


class DownRedis:
    def incr(self, key):
        raise ConnectionError("redis unreachable")

    def ttl(self, key):
        raise ConnectionError("redis unreachable")


def test_allows_up_to_limit_per_user():
    redis = FakeRedis()
    limiter = IngestionRateLimiter(redis_client=redis, limit=2, window=60)

    assert limiter.allow_request("alice")
    assert limiter.allow_request("alice")
    assert not limiter.allow_request("alice")
    assert limiter.allow_request("bob")
    assert redis.expiries == {"rate_limit:ingest:alice": 60, "rate_limit:ingest:bob": 60}
    assert limiter.get_retry_after("alice") == 60


def test_fails_open_when_redis_down():
    limiter = IngestionRateLimiter(redis_client=DownRedis(), limit=1)

    assert limiter.allow_request("alice")
    assert limiter.allow_request("alice")
    assert limiter.get_retry_after("alice") == 0
