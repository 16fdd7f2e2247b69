# cinerate/services/cache_service.py
"""
Cache service for derived rating views.

Redis-backed with a circuit breaker and an in-memory fallback used when
Redis is unreachable at startup. Every failure is logged and degraded to a
cache miss so reads always fall through to the vote store.
"""

from datetime import datetime, timedelta
from enum import Enum
import fnmatch
import json
import logging
import threading
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar

import redis
from redis import Redis
from redis.exceptions import RedisError

from ..core.config import Settings, settings
from .base import BaseService, CacheProtocol

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 300


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject calls
    HALF_OPEN = "half_open"  # Testing if service recovered


class CircuitBreaker:
    """
    Circuit breaker for cache resilience.

    Prevents a dead Redis from adding a network timeout to every request.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
        expected_exception: type[BaseException] = RedisError,
    ) -> None:
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception

        self._failure_count: int = 0
        self._last_failure_time: Optional[datetime] = None
        self._state: CircuitState = CircuitState.CLOSED
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            if self._state == CircuitState.OPEN and self._last_failure_time:
                elapsed = (datetime.now() - self._last_failure_time).total_seconds()
                if elapsed >= self.recovery_timeout:
                    self._state = CircuitState.HALF_OPEN
            return self._state

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> Optional[T]:
        """
        Execute function with circuit breaker protection.

        Returns None without calling when the circuit is open. Errors propagate
        while the circuit is still closed.
        """
        if self.state == CircuitState.OPEN:
            logger.warning(f"Circuit breaker is OPEN, skipping {func.__name__}")
            return None

        try:
            result = func(*args, **kwargs)
            self._on_success()
            return result
        except self.expected_exception:
            self._on_failure()
            if self.state == CircuitState.CLOSED:
                raise
            return None

    def _on_success(self) -> None:
        with self._lock:
            self._failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.CLOSED
                logger.info("Circuit breaker recovered, closing circuit")

    def _on_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = datetime.now()
            if self._failure_count >= self.failure_threshold:
                self._state = CircuitState.OPEN
                logger.warning(f"Circuit breaker opened after {self._failure_count} failures")


class CacheService:
    """
    JSON cache with TTL, multi-key delete and glob pattern delete.

    One instance is shared by every request of the process, so the in-memory
    fallback is guarded by a lock.
    """

    def __init__(self, redis_client: Optional[Redis] = None, redis_url: Optional[str] = None):
        self.logger = logging.getLogger(__name__)
        self.circuit_breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60)

        # In-memory fallback: key -> (serialized value, expiry)
        self._memory: Dict[str, Tuple[str, datetime]] = {}
        self._memory_lock = threading.Lock()

        self.redis: Optional[Redis] = redis_client
        if self.redis is None and redis_url:
            self._setup_redis_connection(redis_url)

        self._stats: Dict[str, int] = {"hits": 0, "misses": 0, "sets": 0, "deletes": 0, "errors": 0}

    def _setup_redis_connection(self, redis_url: str) -> None:
        try:
            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_keepalive=True,
                socket_connect_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
                max_connections=50,
            )
            client.ping()
            self.redis = client
            logger.info("Connected to Redis")
        except (RedisError, ConnectionError) as e:
            logger.warning(f"Redis not available: {e}. Using in-memory fallback.")
            self.redis = None

    @property
    def backend(self) -> str:
        return "redis" if self.redis is not None else "memory"

    def _redis_usable(self) -> bool:
        return self.redis is not None and self.circuit_breaker.state != CircuitState.OPEN

    # Core Cache Operations

    @BaseService.measure_operation("cache_get")
    def get(self, key: str) -> Optional[Any]:
        """Get a value; any failure is reported as a miss."""
        redis_client = self.redis

        def _get_from_redis() -> Optional[str]:
            assert redis_client is not None
            return redis_client.get(key)

        try:
            raw: Optional[str] = None
            if redis_client is not None:
                if self._redis_usable():
                    raw = self.circuit_breaker.call(_get_from_redis)
            else:
                raw = self._memory_get(key)

            if raw is None:
                self._stats["misses"] += 1
                return None
            self._stats["hits"] += 1
            return json.loads(raw)
        except Exception as e:
            logger.warning(f"Cache get error for key {key}: {e}")
            self._stats["errors"] += 1
            return None

    @BaseService.measure_operation("cache_set")
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        redis_client = self.redis
        ttl_seconds = int(ttl or DEFAULT_TTL_SECONDS)

        try:
            serialized = json.dumps(value, default=str)

            def _set_in_redis() -> bool:
                assert redis_client is not None
                redis_client.setex(key, ttl_seconds, serialized)
                return True

            if redis_client is not None:
                if not self._redis_usable():
                    return False
                stored = bool(self.circuit_breaker.call(_set_in_redis))
            else:
                with self._memory_lock:
                    self._memory[key] = (serialized, datetime.now() + timedelta(seconds=ttl_seconds))
                stored = True

            if stored:
                self._stats["sets"] += 1
            return stored
        except Exception as e:
            logger.warning(f"Cache set error for key {key}: {e}")
            self._stats["errors"] += 1
            return False

    @BaseService.measure_operation("cache_delete")
    def delete(self, *keys: str) -> int:
        """Delete keys; returns how many existed."""
        if not keys:
            return 0
        redis_client = self.redis

        def _delete_from_redis() -> int:
            assert redis_client is not None
            return int(redis_client.delete(*keys))

        try:
            if redis_client is not None:
                if not self._redis_usable():
                    return 0
                count = int(self.circuit_breaker.call(_delete_from_redis) or 0)
            else:
                with self._memory_lock:
                    count = sum(1 for key in keys if self._memory.pop(key, None) is not None)
            self._stats["deletes"] += count
            return count
        except Exception as e:
            logger.warning(f"Cache delete error for keys {keys}: {e}")
            self._stats["errors"] += 1
            return 0

    @BaseService.measure_operation("cache_delete_pattern")
    def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching a glob pattern."""
        try:
            if self.redis is not None:
                count = self._delete_pattern_redis(pattern)
            else:
                count = self._delete_pattern_memory(pattern)
            self._stats["deletes"] += count
            logger.debug(f"Deleted {count} keys matching pattern: {pattern}")
            return count
        except Exception as e:
            logger.warning(f"Cache delete pattern error: {e}")
            self._stats["errors"] += 1
            return 0

    def _delete_pattern_redis(self, pattern: str) -> int:
        """Delete pattern from Redis using SCAN."""
        redis_client = self.redis
        if redis_client is None or not self._redis_usable():
            return 0
        count = 0
        for key in redis_client.scan_iter(match=pattern):
            if redis_client.delete(key):
                count += 1
        return count

    def _delete_pattern_memory(self, pattern: str) -> int:
        with self._memory_lock:
            doomed = [k for k in self._memory if fnmatch.fnmatchcase(k, pattern)]
            for key in doomed:
                self._memory.pop(key, None)
        return len(doomed)

    def _memory_get(self, key: str) -> Optional[str]:
        with self._memory_lock:
            entry = self._memory.get(key)
            if entry is None:
                return None
            raw, expires_at = entry
            if datetime.now() >= expires_at:
                del self._memory[key]
                return None
            return raw

    def clear(self) -> None:
        """Drop the in-memory fallback contents (Redis is left alone)."""
        with self._memory_lock:
            self._memory.clear()

    def get_stats(self) -> Dict[str, Any]:
        total = self._stats["hits"] + self._stats["misses"]
        return {
            **self._stats,
            "backend": self.backend,
            "hit_rate": round(self._stats["hits"] / total * 100, 2) if total else 0,
            "circuit_breaker": self.circuit_breaker.state.value,
        }


class NullCache:
    """Cache that never stores anything: every read misses and every write is discarded."""

    backend = "null"

    def get(self, key: str) -> Optional[Any]:
        return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        return True

    def delete(self, *keys: str) -> int:
        return 0

    def delete_pattern(self, pattern: str) -> int:
        return 0

    def get_stats(self) -> Dict[str, Any]:
        return {"backend": self.backend}


def build_cache(config: Settings = settings) -> CacheProtocol:
    """Build the process-wide cache from settings."""
    if not config.cache_enabled:
        logger.info("Caching disabled, using NullCache")
        return NullCache()
    return CacheService(redis_url=config.redis_url)
