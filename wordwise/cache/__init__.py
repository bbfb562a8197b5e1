"""
Cache Module - Cache-aside access to Redis.

Components:
- keys: One key builder per cache entry family
- gateway: Best-effort reads/writes that degrade to a miss on any failure
"""

from wordwise.cache.gateway import MISS, CacheGateway, CacheLookup, create_cache_gateway
from wordwise.cache.keys import CacheKeys

__all__ = [
    "MISS",
    "CacheGateway",
    "CacheKeys",
    "CacheLookup",
    "create_cache_gateway",
]
