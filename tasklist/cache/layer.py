import asyncio
import json
import logging
from typing import Any, Callable, Optional

from cachetools import TTLCache
from redis.asyncio import Redis, RedisError

from tasklist.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class CacheLayer:
    """
    Two-tier read cache for task lookups.

    L1: Process-local TTLCache (fast, limited size)
    L2: Redis (shared, larger capacity), only when REDIS_DSN is set

    Features:
    - Stampede protection with per-key locks
    - Graceful degradation when Redis is unavailable
    - Automatic key namespacing
    """

    def __init__(self):
        self._settings: Settings | None = None
        self._redis: Redis | None = None
        self.l1: TTLCache | None = None
        self._initialized = False
        # Generation per key, bumped by delete(); a load that started before
        # the bump is returned but not stored
        self._generations = TTLCache(maxsize=10_000, ttl=300)
        self._generation_seq = 0

        # Stats tracking
        self.stats = {
            "l1_hits": 0,
            "l2_hits": 0,
            "misses": 0,
            "errors": 0,
        }

    @property
    def enabled(self) -> bool:
        return self._settings is not None and self._settings.cache_enabled

    async def init_cache(self, settings: Settings | None = None):
        """Initialize settings, L1 cache, and Redis connection."""
        if self._initialized:
            return

        if self._settings is None:
            self._settings = settings or get_settings()

        settings = self._settings

        if self.l1 is None:
            self.l1 = TTLCache(maxsize=settings.l1_maxsize, ttl=settings.l1_ttl_seconds)

        if self._redis is None and settings.cache_enabled and settings.redis_dsn:
            try:
                self._redis = Redis.from_url(
                    settings.redis_dsn,
                    encoding="utf-8",
                    decode_responses=True,
                    max_connections=settings.redis_pool_size,
                    socket_connect_timeout=5,
                    socket_keepalive=True,
                    health_check_interval=30,
                )

                # Verify connection
                await self._redis.ping()
                logger.info("Redis connection established")
            except RedisError as e:
                logger.error("Redis initialization failed, using L1 only: %s", e)
                await self._drop_redis()

        self._initialized = True
        logger.info("Cache layer initialized (l2=%s)", "redis" if self._redis else "off")

    async def _drop_redis(self):
        redis, self._redis = self._redis, None
        if redis is not None:
            try:
                await redis.aclose()
            except RedisError as e:
                logger.warning("Error closing Redis: %s", e)

    def _l1_key(self, key: str) -> str:
        """Build namespaced L1 cache key."""
        return f"{self._settings.cache_namespace}l1:{key}"

    def _l2_key(self, key: str) -> str:
        """Build namespaced L2 cache key."""
        return f"{self._settings.cache_namespace}l2:{key}"

    def _serialize(self, value: Any) -> str:
        return json.dumps(value, default=str)

    def _deserialize(self, raw: str) -> Any:
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            # Return raw string if not valid JSON
            return raw

    async def get(
        self,
        key: str,
        loader: Optional[Callable[[], Any]] = None,
        l2_ttl: Optional[int] = None,
    ):
        """
        Retrieve value from cache hierarchy: L1 -> L2 -> loader.

        Args:
            key: Cache key (will be namespaced automatically)
            loader: Async function to load value on cache miss
            l2_ttl: TTL for L2 cache in seconds (uses default if None)

        Returns:
            Cached value or loaded value, or None if not found
        """
        await self.init_cache()

        if not self.enabled:
            return await loader() if loader else None

        l1_key = self._l1_key(key)

        # 1) Check L1 (fast path)
        if l1_key in self.l1:
            self.stats["l1_hits"] += 1
            logger.debug("L1 hit: %s", key)
            return self.l1[l1_key]

        # 2) Check L2 (Redis)
        value = await self._get_l2(key)
        if value is not None:
            self.stats["l2_hits"] += 1
            return value

        # 3) Load from source (with stampede protection)
        if loader is None:
            self.stats["misses"] += 1
            logger.debug("Cache miss, no loader: %s", key)
            return None

        lock = _get_lock_for_key(key)
        async with lock:
            # Double-check caches after acquiring lock
            if l1_key in self.l1:
                return self.l1[l1_key]

            value = await self._get_l2(key)
            if value is not None:
                return value

            self.stats["misses"] += 1
            logger.debug("Loading from source: %s", key)
            generation = self._generations.get(key, 0)
            value = await loader()

            if value is None:
                return None

            if self._generations.get(key, 0) != generation:
                logger.debug("Key invalidated during load, not storing: %s", key)
                return value

            await self._set_both_layers(key, value, l2_ttl)
            return value

    async def _get_l2(self, key: str):
        if not self._redis:
            return None
        try:
            raw = await self._redis.get(self._l2_key(key))
        except RedisError as e:
            logger.error("Redis GET error for %s: %s", key, e)
            self.stats["errors"] += 1
            return None
        if raw is None:
            return None
        logger.debug("L2 hit: %s", key)
        value = self._deserialize(raw)
        # Populate L1
        self.l1[self._l1_key(key)] = value
        return value

    async def _set_both_layers(self, key: str, value: Any, l2_ttl: int | None = None):
        self.l1[self._l1_key(key)] = value

        if self._redis:
            try:
                ttl = l2_ttl or self._settings.l2_ttl_seconds
                await self._redis.set(self._l2_key(key), self._serialize(value), ex=ttl)
                logger.debug("Stored in L2: %s (ttl=%s)", key, ttl)
            except RedisError as e:
                logger.error("Redis SET error for %s: %s", key, e)
                self.stats["errors"] += 1

    async def set(self, key: str, value: Any, l2_ttl: Optional[int] = None):
        """Explicitly set a value in both cache layers."""
        await self.init_cache()
        if self.enabled:
            await self._set_both_layers(key, value, l2_ttl)

    async def delete(self, key: str):
        """
        Delete a key from both cache layers.

        Deleting from Redis is critical to prevent stale data, so errors
        there are counted and logged.
        """
        await self.init_cache()
        if not self.enabled:
            return

        self._generation_seq += 1
        self._generations[key] = self._generation_seq
        self.l1.pop(self._l1_key(key), None)

        if self._redis:
            try:
                await self._redis.delete(self._l2_key(key))
            except RedisError as e:
                logger.error("Redis DELETE error for %s: %s", key, e)
                self.stats["errors"] += 1

    def clear(self):
        """Drop everything held in L1."""
        if self.l1 is not None:
            self.l1.clear()

    async def close(self):
        """Graceful shutdown; the layer can be initialized again afterwards."""
        if self._redis:
            await self._drop_redis()
            logger.info("Redis connection closed")
        self.clear()
        self.l1 = None
        self._settings = None
        self._initialized = False

    def get_stats(self) -> dict:
        total = sum([self.stats["l1_hits"], self.stats["l2_hits"], self.stats["misses"]])
        return {
            **self.stats,
            "l1_size": len(self.l1) if self.l1 else 0,
            "l1_maxsize": self.l1.maxsize if self.l1 else 0,
            "l2": self._redis is not None,
            "hit_rate": (
                (self.stats["l1_hits"] + self.stats["l2_hits"]) / total if total > 0 else 0
            ),
        }


# Per-key locks for stampede protection: concurrent loads of the same key
# wait on one lock so only the first reaches the database. setdefault()
# hands every caller the same lock object; entries expire after 300s.
_locks = TTLCache(maxsize=10_000, ttl=300)


def _get_lock_for_key(key: str) -> asyncio.Lock:
    return _locks.setdefault(key, asyncio.Lock())


# Cache layer instance (singleton per worker)
cache_layer = CacheLayer()
