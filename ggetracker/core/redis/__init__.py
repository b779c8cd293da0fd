"""
Redis infrastructure for the GGE Tracker API.

Exports the async cache store.
"""

from ggetracker.core.redis.service import CacheStore, RedisCacheStore

__all__ = [
    "CacheStore",
    "RedisCacheStore",
]
