"""
RedisCacheStore: async Redis-backed cache store for the GGE Tracker API

Purpose
-------
Provide the key/value store the cache-aside layer sits on: per-key TTL,
atomic set-with-expiry, plain get, atomic increment for fill-version bumps
and a PING for health reporting.

Responsibilities
----------------
- Own one redis-py asyncio client with connection pooling
- Expose get / set_with_expiry / incr / ping with structured logging
- Report initialization and health status

Non-Responsibilities
--------------------
- Key composition and fill versions (see ggetracker.core.cache)
- Swallowing failures: every store error is raised; the accessor decides
  what degrades to a miss

Configuration Keys
------------------
- REDIS_URL              : str (default "redis://localhost:6379/0")
- REDIS_SOCKET_TIMEOUT   : int (default 5)
- REDIS_MAX_CONNECTIONS  : int (default 50)

Architecture Notes
------------------
- Uses redis-py 4+ asyncio client with connection pooling
- `decode_responses=True` so values round-trip as `str`
- Instances are owned by the ApplicationContext; tests substitute any
  object satisfying the `CacheStore` protocol
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Optional, Protocol

from redis.asyncio.client import Redis as AsyncRedis  # type: ignore[misc]
from redis.exceptions import RedisError

from ggetracker.core.config.config import Config
from ggetracker.core.exceptions import CacheStoreError
from ggetracker.core.logging.logger import get_logger

logger = get_logger(__name__)


class CacheStore(Protocol):
    """Narrow store interface consumed by the cache accessor and version registry."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set_with_expiry(self, key: str, ttl_seconds: int, value: str) -> None: ...

    async def incr(self, key: str) -> int: ...

    async def ping(self) -> bool: ...


class RedisCacheStore:
    """
    Async Redis cache store.

    Example
    -------
    >>> store = RedisCacheStore()
    >>> await store.initialize()
    >>> await store.set_with_expiry("players:1:/players?page=1", 1200, "{}")
    >>> await store.get("players:1:/players?page=1")
    '{}'
    """

    def __init__(
        self,
        url: Optional[str] = None,
        socket_timeout: Optional[int] = None,
        max_connections: Optional[int] = None,
        client: Optional[AsyncRedis] = None,
    ) -> None:
        self._url = url or Config.REDIS_URL
        self._socket_timeout = socket_timeout or Config.REDIS_SOCKET_TIMEOUT
        self._max_connections = max_connections or Config.REDIS_MAX_CONNECTIONS
        self._client: Optional[AsyncRedis] = client
        self._init_lock = asyncio.Lock()
        self._is_healthy = client is not None

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE MANAGEMENT
    # ═══════════════════════════════════════════════════════════════════════

    async def initialize(self) -> None:
        """
        Create the client and verify the connection.

        Idempotent. Safe to call multiple times.

        Raises
        ------
        CacheStoreError
            If the store cannot be reached.
        """
        if self._client is not None:
            logger.debug("RedisCacheStore already initialized, skipping")
            return

        async with self._init_lock:
            if self._client is not None:
                return

            start_time = time.monotonic()
            client: AsyncRedis = AsyncRedis.from_url(
                self._url,
                socket_timeout=self._socket_timeout,
                encoding="utf-8",
                decode_responses=True,
                max_connections=self._max_connections,
                retry_on_timeout=False,
                health_check_interval=30,
            )

            try:
                await client.ping()  # type: ignore[misc]
            except (RedisError, OSError) as exc:
                await client.aclose()
                logger.critical(
                    "Failed to initialize RedisCacheStore",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "url_scheme": self._url_scheme,
                    },
                    exc_info=True,
                )
                raise CacheStoreError("initialize", original_error=exc) from exc

            self._client = client
            self._is_healthy = True

            logger.info(
                "RedisCacheStore initialized successfully",
                extra={
                    "url_scheme": self._url_scheme,
                    "socket_timeout_seconds": self._socket_timeout,
                    "max_connections": self._max_connections,
                    "initialization_time_ms": round(
                        (time.monotonic() - start_time) * 1000, 2
                    ),
                },
            )

    async def shutdown(self) -> None:
        """Close the client. Safe to call even if not initialized."""
        client = self._client
        self._client = None
        self._is_healthy = False

        if client is None:
            logger.debug("RedisCacheStore not initialized, nothing to shutdown")
            return

        try:
            await client.aclose()
            logger.info("RedisCacheStore shutdown complete")
        except (RedisError, OSError) as exc:
            logger.error(
                "Error during RedisCacheStore shutdown",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )

    @property
    def _url_scheme(self) -> str:
        return self._url.split("://")[0] if "://" in self._url else "unknown"

    def client(self) -> AsyncRedis:
        """
        Return the underlying client.

        Raises
        ------
        CacheStoreError
            If the store has not been initialized.
        """
        if self._client is None:
            raise CacheStoreError(
                "client",
                original_error=RuntimeError("RedisCacheStore not initialized"),
            )
        return self._client

    # ═══════════════════════════════════════════════════════════════════════
    # HEALTH & STATUS
    # ═══════════════════════════════════════════════════════════════════════

    async def ping(self) -> bool:
        """
        Verify Redis connectivity via PING command.

        Returns
        -------
        bool
            True if Redis is reachable and responsive, False otherwise.
        """
        if self._client is None:
            self._is_healthy = False
            return False

        start_time = time.monotonic()
        try:
            pong = await self._client.ping()  # type: ignore[misc]
        except (RedisError, OSError) as exc:
            self._is_healthy = False
            logger.warning(
                "Redis health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False

        self._is_healthy = bool(pong)
        logger.debug(
            "Redis health check",
            extra={
                "healthy": self._is_healthy,
                "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return self._is_healthy

    def is_healthy(self) -> bool:
        """Return cached health status without performing I/O."""
        return self._is_healthy

    def get_status(self) -> dict[str, Any]:
        return {
            "initialized": self._client is not None,
            "healthy": self._is_healthy,
            "url_scheme": self._url_scheme,
        }

    # ═══════════════════════════════════════════════════════════════════════
    # KEY-VALUE OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════

    async def get(self, key: str) -> Optional[str]:
        """
        Get a string value from Redis.

        Parameters
        ----------
        key : str
            The Redis key to retrieve.

        Returns
        -------
        Optional[str]
            The value if it exists, None otherwise.
        """
        start_time = time.monotonic()
        try:
            result = await self.client().get(key)
        except (RedisError, OSError) as exc:
            raise CacheStoreError("GET", key, exc) from exc

        logger.debug(
            "Redis GET operation",
            extra={
                "key": key,
                "found": result is not None,
                "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return result

    async def set_with_expiry(self, key: str, ttl_seconds: int, value: str) -> None:
        """
        Atomically store a value with a time-to-live (SETEX).

        Parameters
        ----------
        key : str
            The Redis key to set.
        ttl_seconds : int
            Time-to-live in seconds.
        value : str
            The serialized value.
        """
        start_time = time.monotonic()
        try:
            await self.client().setex(key, ttl_seconds, value)
        except (RedisError, OSError) as exc:
            raise CacheStoreError("SETEX", key, exc) from exc

        logger.debug(
            "Redis SETEX operation",
            extra={
                "key": key,
                "ttl_seconds": ttl_seconds,
                "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )

    async def incr(self, key: str) -> int:
        """
        Increment a key's integer value atomically.

        Returns
        -------
        int
            The new value after incrementing (1 if the key was absent).
        """
        try:
            new_value = await self.client().incr(key)
        except (RedisError, OSError) as exc:
            raise CacheStoreError("INCR", key, exc) from exc

        logger.debug(
            "Redis INCR operation",
            extra={"key": key, "new_value": int(new_value)},
        )
        return int(new_value)
