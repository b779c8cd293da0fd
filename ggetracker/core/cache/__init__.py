"""
Cache-aside subsystem for the GGE Tracker API.

Architecture
------------
- **keys.py**: stable key serialization and the fluent key builder
- **versions.py**: per-namespace fill versions (O(1) invalidation)
- **accessor.py**: the read / write / get_or_compute protocol

Usage Example
-------------
>>> from ggetracker.core.cache import CacheAccessor, VersionRegistry, query_key
>>>
>>> accessor = CacheAccessor(store, VersionRegistry(store))
>>> data = await accessor.get_or_compute(
...     "players", query_key("/players", {"page": 2, "server": "DE1"}), producer
... )
"""

from ggetracker.core.cache.accessor import CacheAccessor, CacheStats
from ggetracker.core.cache.keys import CacheKeyBuilder, compose_key, query_key
from ggetracker.core.cache.versions import VersionRegistry, fill_version_key

__all__ = [
    "CacheAccessor",
    "CacheStats",
    "CacheKeyBuilder",
    "VersionRegistry",
    "compose_key",
    "fill_version_key",
    "query_key",
]
