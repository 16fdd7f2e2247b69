from datetime import datetime, timedelta
from unittest.mock import Mock, patch

from redis.exceptions import RedisError

from cinerate.core.config import Settings
from cinerate.services.cache_service import (
    CacheService,
    CircuitBreaker,
    CircuitState,
    NullCache,
    build_cache,
)


class TestMemoryBackend:
    def test_set_get_round_trip_uses_json(self):
        cache = CacheService()
        assert cache.backend == "memory"

        cache.set("entity_stats:E1", {"score_counts": {5: 2}}, ttl=60)

        # Same shape as a Redis round-trip: integer keys come back as strings
        assert cache.get("entity_stats:E1") == {"score_counts": {"5": 2}}

    def test_miss_returns_none(self):
        assert CacheService().get("nope") is None

    def test_expired_entry_is_a_miss(self):
        cache = CacheService()
        cache.set("k", 1, ttl=60)
        with patch("cinerate.services.cache_service.datetime") as fake_dt:
            fake_dt.now.return_value = datetime.now() + timedelta(seconds=120)
            assert cache.get("k") is None

    def test_delete_multiple_keys_counts_existing(self):
        cache = CacheService()
        cache.set("a", 1, ttl=60)
        cache.set("b", 2, ttl=60)

        assert cache.delete("a", "b", "c") == 2
        assert cache.get("a") is None

    def test_delete_pattern(self):
        cache = CacheService()
        cache.set("voter_profile:V1:20:0:created_at:desc", [], ttl=60)
        cache.set("voter_profile:V1:10:0:score:asc", [], ttl=60)
        cache.set("voter_profile:V2:20:0:created_at:desc", [], ttl=60)

        assert cache.delete_pattern("voter_profile:V1:*") == 2
        assert cache.get("voter_profile:V2:20:0:created_at:desc") == []


class TestRedisBackend:
    def test_get_decodes_json(self):
        client = Mock()
        client.get.return_value = '{"total_votes": 3}'
        cache = CacheService(redis_client=client)

        assert cache.get("entity_stats:E1") == {"total_votes": 3}

    def test_set_uses_setex_with_ttl(self):
        client = Mock()
        cache = CacheService(redis_client=client)

        assert cache.set("k", {"a": 1}, ttl=900) is True
        client.setex.assert_called_once_with("k", 900, '{"a": 1}')

    def test_errors_degrade_to_miss(self):
        client = Mock()
        client.get.side_effect = RedisError("down")
        client.setex.side_effect = RedisError("down")
        client.delete.side_effect = RedisError("down")
        cache = CacheService(redis_client=client)

        assert cache.get("k") is None
        assert cache.set("k", 1, ttl=10) is False
        assert cache.delete("k") == 0
        assert cache.get_stats()["errors"] == 3

    def test_open_circuit_skips_redis(self):
        client = Mock()
        client.get.side_effect = RedisError("down")
        cache = CacheService(redis_client=client)

        for _ in range(6):
            assert cache.get("k") is None

        calls = client.get.call_count
        assert cache.circuit_breaker.state == CircuitState.OPEN
        assert cache.get("k") is None
        assert client.get.call_count == calls

    def test_unreachable_redis_url_falls_back_to_memory(self):
        with patch("cinerate.services.cache_service.redis.from_url") as from_url:
            from_url.return_value.ping.side_effect = RedisError("refused")
            cache = CacheService(redis_url="redis://nowhere:6379")

        assert cache.backend == "memory"
        cache.set("k", "v", ttl=5)
        assert cache.get("k") == "v"


class TestCircuitBreaker:
    def test_opens_after_threshold(self):
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60)

        def boom():
            raise RedisError("x")

        try:
            breaker.call(boom)
        except RedisError:
            pass
        assert breaker.state == CircuitState.CLOSED
        assert breaker.call(boom) is None
        assert breaker.state == CircuitState.OPEN

    def test_half_open_after_recovery_timeout(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)

        def boom():
            raise RedisError("x")

        breaker.call(boom)
        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.call(lambda: "ok") == "ok"
        assert breaker.state == CircuitState.CLOSED


def test_null_cache_always_misses():
    cache = NullCache()
    assert cache.set("k", 1, ttl=10) is True
    assert cache.get("k") is None
    assert cache.delete("k") == 0
    assert cache.delete_pattern("*") == 0


def test_build_cache_respects_flag():
    assert isinstance(build_cache(Settings(cache_enabled=False)), NullCache)
    cache = build_cache(Settings(cache_enabled=True, redis_url=None))
    assert isinstance(cache, CacheService)
    assert cache.backend == "memory"
