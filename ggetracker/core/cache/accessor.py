"""
Cache-aside accessor.

Purpose
-------
Front every cacheable read of the API with one protocol: build the
versioned key, try the store, on a miss await the producer, write the result
back with a TTL and return it. Hit and miss paths return the same shape.

Responsibilities
----------------
- Compose keys with the namespace's current fill version
- JSON (de)serialization, or pass-through of caller-serialized strings in
  raw mode (e.g. base64 PNG data)
- Degrade store failures locally: a failed read is a miss, a failed write is
  a logged no-op
- Count hits, misses and failures for the status endpoint

Non-Responsibilities
--------------------
- Single-flight de-duplication: concurrent misses on one key both run the
  producer and both write (last write wins)
- Deleting entries: invalidation is a fill-version bump
- Retrying producers (producers wrap themselves in a RetryPolicy)

Architecture Notes
------------------
- Every store call, producer call and write is a suspension point
- Producer exceptions propagate unchanged and nothing is written
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from ggetracker.core.cache.keys import compose_key
from ggetracker.core.cache.versions import VersionRegistry
from ggetracker.core.config.config import Config
from ggetracker.core.logging.logger import get_logger
from ggetracker.core.redis.service import CacheStore

logger = get_logger(__name__)

Producer = Callable[[], Awaitable[Any]]


@dataclass(slots=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    writes: int = 0
    write_failures: int = 0
    read_errors: int = 0
    malformed_values: int = 0


class CacheAccessor:
    """
    Cache-aside reads and writes over a `CacheStore`.

    Example
    -------
    >>> accessor = CacheAccessor(store, VersionRegistry(store))
    >>> page = await accessor.get_or_compute(
    ...     "DE1",
    ...     query_key("/players", {"page": 2}),
    ...     lambda: load_page(2),
    ... )
    """

    def __init__(
        self,
        store: CacheStore,
        versions: VersionRegistry,
        default_ttl: Optional[int] = None,
    ) -> None:
        self._store = store
        self._versions = versions
        self._default_ttl = default_ttl or Config.CACHE_DEFAULT_TTL
        self._stats = CacheStats()

    @property
    def default_ttl(self) -> int:
        return self._default_ttl

    # ═══════════════════════════════════════════════════════════════════════
    # KEY COMPOSITION
    # ═══════════════════════════════════════════════════════════════════════

    async def build_key(self, namespace: str, key_suffix: str, versioned: bool = True) -> str:
        """Compose the store key, re-reading the fill version when versioned."""
        if not versioned:
            return compose_key(namespace, key_suffix)
        version = await self._versions.get_version(namespace)
        return compose_key(namespace, key_suffix, version)

    # ═══════════════════════════════════════════════════════════════════════
    # READ / WRITE
    # ═══════════════════════════════════════════════════════════════════════

    async def read(self, key: str, raw: bool = False) -> Optional[Any]:
        """
        Look a key up once.

        Returns
        -------
        Optional[Any]
            The decoded value, the stored string in raw mode, or None on a
            miss. Transport errors and malformed JSON count as a miss.
        """
        try:
            stored = await self._store.get(key)
        except Exception as exc:
            self._stats.read_errors += 1
            logger.warning(
                "Cache read failed, treating as miss",
                extra={
                    "key": key,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            )
            return None

        if stored is None:
            return None

        if raw:
            return stored

        try:
            return json.loads(stored)
        except ValueError as exc:
            self._stats.malformed_values += 1
            logger.warning(
                "Malformed cached value, treating as miss",
                extra={
                    "key": key,
                    "error": str(exc),
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            )
            return None

    async def write(
        self,
        key: str,
        value: Any,
        ttl_seconds: Optional[int] = None,
        raw: bool = False,
    ) -> None:
        """
        Store a value with a TTL. Failures are logged and swallowed.

        Parameters
        ----------
        key : str
            Full store key
        value : Any
            JSON-serializable value, or a string when `raw`
        ttl_seconds : Optional[int]
            Expiry; defaults to the accessor default (1200 s)
        raw : bool
            Store `value` as-is instead of JSON-encoding it
        """
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        namespace = key.split(":", 1)[0]

        try:
            payload = value if raw else json.dumps(value)
            await self._store.set_with_expiry(key, ttl, payload)
        except Exception as exc:
            self._stats.write_failures += 1
            logger.error(
                "Cache write failed",
                extra={
                    "key": key,
                    "namespace": namespace,
                    "ttl_seconds": ttl,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            )
            return

        self._stats.writes += 1

    # ═══════════════════════════════════════════════════════════════════════
    # CACHE-ASIDE
    # ═══════════════════════════════════════════════════════════════════════

    async def get_or_compute(
        self,
        namespace: str,
        key_suffix: str,
        producer: Producer,
        ttl_seconds: Optional[int] = None,
        raw: bool = False,
        versioned: bool = True,
    ) -> Any:
        """
        Return the cached value for a logical key, producing it on a miss.

        Parameters
        ----------
        namespace : str
            Key family; its fill version is embedded unless `versioned` is False
        key_suffix : str
            Stable serialization of the query (see `query_key`)
        producer : Producer
            Zero-argument coroutine function computing the value
        ttl_seconds : Optional[int]
            Expiry of the written entry
        raw : bool
            Value is a caller-serialized string
        versioned : bool
            Embed the namespace fill version in the key

        Raises
        ------
        Exception
            Whatever the producer raised; nothing is cached in that case.
        """
        key = await self.build_key(namespace, key_suffix, versioned=versioned)

        cached = await self.read(key, raw=raw)
        if cached is not None:
            self._stats.hits += 1
            logger.debug("Cache hit", extra={"key": key})
            return cached

        self._stats.misses += 1
        logger.debug("Cache miss", extra={"key": key})

        value = await producer()
        await self.write(key, value, ttl_seconds=ttl_seconds, raw=raw)
        return value

    # ═══════════════════════════════════════════════════════════════════════
    # STATUS
    # ═══════════════════════════════════════════════════════════════════════

    def get_status(self) -> Dict[str, Any]:
        stats = asdict(self._stats)
        lookups = self._stats.hits + self._stats.misses
        stats["hit_rate"] = round(self._stats.hits / lookups, 4) if lookups else 0.0
        stats["default_ttl"] = self._default_ttl
        return stats
