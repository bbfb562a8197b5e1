"""
Cache-Aside Gateway.

Wraps the Redis cache store behind a "try" interface: every read returns a
``CacheLookup`` (hit or miss), every write and invalidation is best-effort.
A Redis outage, a timeout or an undecodable value is logged and turned into
a miss / no-op, so no cache exception ever reaches a service.

Value shapes:
- JSON blobs: one string value with a TTL
- Structured records: a hash of field -> JSON, TTL on the whole key
- Membership sets: a set of strings with a TTL

Hashes and sets carry a ready marker that is written in the same MULTI/EXEC
block as the data and the TTL. A reader that does not see the marker
treats the key as a miss, so a half-written entry is never served.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, TypeVar

import redis
from loguru import logger

from config import Settings, get_settings
from wordwise.cache.keys import CacheKeys

T = TypeVar("T")

READY_MARKER = "__ready__"
SCAN_BATCH = 500

# Everything a cache call may raise that we degrade to a miss
CACHE_ERRORS = (redis.RedisError, ValueError, TypeError)


@dataclass(frozen=True)
class CacheLookup:
    """Result of a cache read: ``hit`` tells whether ``value`` is meaningful."""

    hit: bool
    value: Any = None


MISS = CacheLookup(hit=False)


class CacheGateway:
    """
    Best-effort access to the cache store.

    Args:
        client: Redis client created with ``decode_responses=True``
                (None disables caching: reads miss, writes are no-ops)
        keys: Key builder shared by every service using this gateway
    """

    def __init__(self, client: redis.Redis | None, keys: CacheKeys | None = None):
        self._client = client
        self.keys = keys or CacheKeys()

    @property
    def enabled(self) -> bool:
        return self._client is not None

    # ========================================
    # JSON blobs
    # ========================================

    def get_json(self, key: str) -> CacheLookup:
        if self._client is None:
            return MISS
        try:
            raw = self._client.get(key)
            if raw is None:
                logger.debug(f"Cache miss: {key}")
                return MISS
            value = json.loads(raw)
        except CACHE_ERRORS as e:
            logger.debug(f"Cache read failed for {key}, treating as miss: {e}")
            return MISS
        logger.debug(f"Cache hit: {key}")
        return CacheLookup(hit=True, value=value)

    def set_json(self, key: str, value: Any, ttl: int) -> bool:
        if self._client is None:
            return False
        try:
            self._client.set(key, json.dumps(value, default=str), ex=ttl)
        except CACHE_ERRORS as e:
            logger.debug(f"Cache write failed for {key}: {e}")
            return False
        return True

    # ========================================
    # Structured records (hashes)
    # ========================================

    def get_hash(self, key: str) -> CacheLookup:
        """All fields of a hash entry, JSON-decoded."""
        if self._client is None:
            return MISS
        try:
            raw = self._client.hgetall(key)
            if not raw or READY_MARKER not in raw:
                logger.debug(f"Cache miss: {key}")
                return MISS
            value = {f: json.loads(v) for f, v in raw.items() if f != READY_MARKER}
        except CACHE_ERRORS as e:
            logger.debug(f"Cache read failed for {key}, treating as miss: {e}")
            return MISS
        logger.debug(f"Cache hit: {key}")
        return CacheLookup(hit=True, value=value)

    def get_hash_field(self, key: str, field: str) -> CacheLookup:
        """One field of a hash entry; a miss if the entry is not ready."""
        if self._client is None:
            return MISS
        try:
            ready, raw = self._client.hmget(key, [READY_MARKER, field])
            if ready is None or raw is None:
                return MISS
            return CacheLookup(hit=True, value=json.loads(raw))
        except CACHE_ERRORS as e:
            logger.debug(f"Cache read failed for {key}[{field}], treating as miss: {e}")
            return MISS

    def set_hash(self, key: str, fields: dict[str, Any], ttl: int) -> bool:
        """Replace a hash entry atomically: old fields, new fields and TTL in one MULTI."""
        if self._client is None:
            return False
        mapping = {str(f): json.dumps(v, default=str) for f, v in fields.items()}
        mapping[READY_MARKER] = "1"
        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.delete(key)
            pipe.hset(key, mapping=mapping)
            pipe.expire(key, ttl)
            pipe.execute()
        except CACHE_ERRORS as e:
            logger.debug(f"Cache write failed for {key}: {e}")
            return False
        return True

    # ========================================
    # Membership sets
    # ========================================

    def get_members(self, key: str) -> CacheLookup:
        """Members of a set entry (an empty set is a valid hit)."""
        if self._client is None:
            return MISS
        try:
            members = self._client.smembers(key)
        except CACHE_ERRORS as e:
            logger.debug(f"Cache read failed for {key}, treating as miss: {e}")
            return MISS
        if READY_MARKER not in members:
            logger.debug(f"Cache miss: {key}")
            return MISS
        logger.debug(f"Cache hit: {key}")
        return CacheLookup(hit=True, value={m for m in members if m != READY_MARKER})

    def set_members(self, key: str, members: Iterable[Any], ttl: int) -> bool:
        if self._client is None:
            return False
        values = [str(m) for m in members]
        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.delete(key)
            pipe.sadd(key, READY_MARKER, *values)
            pipe.expire(key, ttl)
            pipe.execute()
        except CACHE_ERRORS as e:
            logger.debug(f"Cache write failed for {key}: {e}")
            return False
        return True

    # ========================================
    # Expiry and invalidation
    # ========================================

    def expire(self, key: str, ttl: int) -> bool:
        if self._client is None:
            return False
        try:
            return bool(self._client.expire(key, ttl))
        except CACHE_ERRORS as e:
            logger.debug(f"Cache expire failed for {key}: {e}")
            return False

    def invalidate(self, *keys: str) -> int:
        """Delete specific keys; returns how many existed."""
        if self._client is None or not keys:
            return 0
        try:
            return int(self._client.delete(*keys))
        except CACHE_ERRORS as e:
            logger.warning(f"Cache invalidation failed for {keys}: {e}")
            return 0

    def invalidate_matching(self, pattern: str) -> int:
        """Delete every key matching a glob pattern (SCAN, never KEYS)."""
        if self._client is None:
            return 0
        removed = 0
        try:
            batch: list[str] = []
            for key in self._client.scan_iter(match=pattern, count=SCAN_BATCH):
                batch.append(key)
                if len(batch) >= SCAN_BATCH:
                    removed += int(self._client.delete(*batch))
                    batch = []
            if batch:
                removed += int(self._client.delete(*batch))
        except CACHE_ERRORS as e:
            logger.warning(f"Cache invalidation failed for pattern {pattern}: {e}")
            return removed
        logger.debug(f"Invalidated {removed} cache keys matching {pattern}")
        return removed

    def invalidate_user(self, user_id: int) -> int:
        """Drop every entry derived from one user's data."""
        return self.invalidate_matching(self.keys.user_pattern(user_id))

    # ========================================
    # Read-through helper
    # ========================================

    def cached_json(
        self,
        key: str,
        ttl: int,
        loader: Callable[[], T],
        dump: Callable[[T], Any] = lambda value: value,
        load: Callable[[Any], T] = lambda value: value,
    ) -> T:
        """
        Cache-aside read of a JSON blob.

        Args:
            key: Cache key
            ttl: Seconds to keep a freshly loaded value
            loader: Computes the value from the record store on a miss
            dump: Converts the value to JSON-compatible data
            load: Rebuilds the value from cached data

        Returns:
            The cached value on a hit, otherwise the freshly loaded one
        """
        lookup = self.get_json(key)
        if lookup.hit:
            try:
                return load(lookup.value)
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Discarding malformed cache entry {key}: {e}")

        value = loader()
        self.set_json(key, dump(value), ttl)
        return value


def create_cache_gateway(settings: Settings | None = None) -> CacheGateway:
    """Build the gateway from settings; disabled when no cache is configured."""
    settings = settings or get_settings()
    keys = CacheKeys(settings.cache_namespace, settings.cache_key_version)

    if not settings.has_cache_configured():
        logger.info("Cache disabled; every read goes to the record store")
        return CacheGateway(None, keys)

    client = redis.Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=settings.cache_socket_timeout,
        socket_connect_timeout=settings.cache_socket_timeout,
    )
    return CacheGateway(client, keys)
