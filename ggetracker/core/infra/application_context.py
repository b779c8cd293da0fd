"""
Application Context (Kernel) - GGE Tracker Infrastructure Orchestration
=======================================================================

Purpose
-------
Central dependency injection kernel that builds every infrastructure
component and domain service in dependency order and tears them down in
reverse order.

Responsibilities
----------------
- Connect the cache store and build the cache-aside layer
- Create the upstream client, the browser manager and the admission queues
- Create the per-server database service and the server registry
- Wire the domain services with constructor injection
- Coordinate graceful shutdown in reverse order
- Provide structured lifecycle logging with timing

Non-Responsibilities
--------------------
- Business logic (delegated to domain services)
- HTTP routing (delegated to ggetracker.api.app)

Initialization Order (Critical):
    1. Cache store (Redis)
    2. Version registry + cache accessor
    3. Upstream client (with retry policy)
    4. Browser manager
    5. Admission queues (castle, render)
    6. Database service + server registry
    7. Domain services

Shutdown Order (Reverse):
    1. Drain admission queues
    2. Browser manager
    3. Upstream client
    4. Database engines
    5. Cache store
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from ggetracker.core.browser.manager import BrowserManager
from ggetracker.core.cache.accessor import CacheAccessor
from ggetracker.core.cache.versions import VersionRegistry
from ggetracker.core.config import Config
from ggetracker.core.constants import CASTLE_QUEUE_NAME, RENDER_QUEUE_NAME
from ggetracker.core.database.service import DatabaseService
from ggetracker.core.http.upstream import UpstreamClient
from ggetracker.core.logging.logger import get_logger
from ggetracker.core.queue.admission import AdmissionQueue
from ggetracker.core.http.retry_policy import RetryPolicy, exponential_backoff
from ggetracker.core.redis.service import CacheStore, RedisCacheStore
from ggetracker.modules.assets.service import AssetService
from ggetracker.modules.castle.service import CastleService
from ggetracker.modules.players.service import PlayerService
from ggetracker.modules.servers.registry import ServerRegistry

logger = get_logger(__name__)


class ApplicationContext:
    """
    Kernel for infrastructure orchestration and dependency injection.

    Usage:
        context = ApplicationContext()
        await context.initialize()
        players = await context.players.list_players("DE1", page=2)
        await context.shutdown()

    Tests inject a store, a browser launcher or an HTTP transport instead
    of the real backends.
    """

    def __init__(
        self,
        store: Optional[CacheStore] = None,
        browser_launcher: Optional[Callable[[], Awaitable[Any]]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        database: Optional[DatabaseService] = None,
    ) -> None:
        """
        Initialize application context.

        Note: Does not perform actual initialization - call initialize() for that.
        """
        self._injected_store = store
        self._browser_launcher = browser_launcher
        self._transport = transport
        self._injected_database = database

        self._store: Optional[CacheStore] = None
        self._versions: Optional[VersionRegistry] = None
        self._accessor: Optional[CacheAccessor] = None
        self._upstream: Optional[UpstreamClient] = None
        self._browser: Optional[BrowserManager] = None
        self._castle_queue: Optional[AdmissionQueue] = None
        self._render_queue: Optional[AdmissionQueue] = None
        self._database: Optional[DatabaseService] = None
        self._registry: Optional[ServerRegistry] = None

        self._players: Optional[PlayerService] = None
        self._castle: Optional[CastleService] = None
        self._assets: Optional[AssetService] = None

        self._initialized: bool = False

        logger.debug("ApplicationContext created")

    # ========================================================================
    # INITIALIZATION
    # ========================================================================

    async def initialize(self) -> None:
        """
        Initialize all infrastructure components in dependency order.

        Raises:
            RuntimeError: If already initialized or initialization fails
        """
        if self._initialized:
            raise RuntimeError("ApplicationContext already initialized")

        logger.info("=" * 70)
        logger.info("APPLICATION CONTEXT INITIALIZATION")
        logger.info("=" * 70)

        start_time = time.perf_counter()

        try:
            # Step 1: Cache store
            step_start = time.perf_counter()
            if self._injected_store is not None:
                self._store = self._injected_store
            else:
                redis_store = RedisCacheStore()
                await redis_store.initialize()
                self._store = redis_store
            logger.info("✓ Cache store ready (%.2fms)", _elapsed_ms(step_start))

            # Step 2: Cache-aside layer
            step_start = time.perf_counter()
            self._versions = VersionRegistry(self._store)
            self._accessor = CacheAccessor(self._store, self._versions)
            logger.info("✓ Cache accessor ready (%.2fms)", _elapsed_ms(step_start))

            # Step 3: Upstream client
            step_start = time.perf_counter()
            retry_policy = RetryPolicy(
                max_attempts=Config.FETCH_RETRY_ATTEMPTS,
                backoff=exponential_backoff(jitter=not Config.is_testing()),
            )
            self._upstream = UpstreamClient(retry_policy=retry_policy, transport=self._transport)
            logger.info("✓ Upstream client ready (%.2fms)", _elapsed_ms(step_start))

            # Step 4: Browser manager (launches lazily on first render)
            self._browser = BrowserManager(launcher=self._browser_launcher)
            logger.info("✓ Browser manager created")

            # Step 5: Admission queues
            self._castle_queue = AdmissionQueue(CASTLE_QUEUE_NAME)
            self._render_queue = AdmissionQueue(RENDER_QUEUE_NAME)
            logger.info("✓ Admission queues created")

            # Step 6: Database + server registry
            self._database = self._injected_database or DatabaseService()
            self._registry = ServerRegistry()
            logger.info(
                "✓ Server registry loaded",
                extra={"servers": len(self._registry.names())},
            )

            # Step 7: Domain services
            step_start = time.perf_counter()
            self._players = PlayerService(self._accessor, self._database, self._registry)
            self._castle = CastleService(
                self._accessor, self._upstream, self._castle_queue, self._registry
            )
            self._assets = AssetService(
                self._accessor, self._upstream, self._browser, self._render_queue
            )
            logger.info("✓ Domain services wired (%.2fms)", _elapsed_ms(step_start))

            self._initialized = True

            logger.info("=" * 70)
            logger.info("✓ Application context initialized successfully")
            logger.info("  Total time: %.2fms", _elapsed_ms(start_time))
            logger.info("=" * 70)

        except Exception as exc:
            logger.critical(
                "Application context initialization failed",
                extra={
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            await self._emergency_shutdown()
            raise RuntimeError("Failed to initialize application context") from exc

    # ========================================================================
    # GRACEFUL SHUTDOWN
    # ========================================================================

    async def shutdown(self) -> None:
        """
        Gracefully shut down all components in reverse dependency order.

        Queued jobs run to completion before the browser and clients close.
        """
        if not self._initialized:
            logger.warning("ApplicationContext not initialized, nothing to shut down")
            return

        logger.info("=" * 70)
        logger.info("APPLICATION CONTEXT SHUTDOWN")
        logger.info("=" * 70)

        for queue in (self._castle_queue, self._render_queue):
            if queue is not None:
                await self._shutdown_step(f"{queue.name} queue drained", queue.join)

        if self._browser is not None:
            await self._shutdown_step("BrowserManager closed", self._browser.shutdown)
        if self._upstream is not None:
            await self._shutdown_step("UpstreamClient closed", self._upstream.close)
        if self._database is not None:
            await self._shutdown_step("DatabaseService shut down", self._database.shutdown)
        if isinstance(self._store, RedisCacheStore):
            await self._shutdown_step("Cache store shut down", self._store.shutdown)

        self._initialized = False
        logger.info("=" * 70)
        logger.info("✓ Application context shutdown complete")
        logger.info("=" * 70)

    async def _shutdown_step(self, label: str, step: Callable[[], Awaitable[None]]) -> None:
        try:
            await step()
            logger.info("✓ %s", label)
        except Exception as exc:
            logger.error(
                "Shutdown step failed: %s",
                label,
                extra={
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )

    async def _emergency_shutdown(self) -> None:
        """
        Best-effort cleanup used when initialization fails partway through.
        """
        logger.warning("Performing emergency shutdown")

        steps = []
        if self._browser is not None:
            steps.append(self._browser.shutdown)
        if self._upstream is not None:
            steps.append(self._upstream.close)
        if self._database is not None:
            steps.append(self._database.shutdown)
        if isinstance(self._store, RedisCacheStore):
            steps.append(self._store.shutdown)

        for step in steps:
            try:
                await step()
            except Exception as exc:
                logger.debug("Emergency shutdown step failed: %s", exc)

    # ========================================================================
    # STATUS
    # ========================================================================

    async def get_status(self, timeout_seconds: float = 5.0) -> Dict[str, Any]:
        """
        Snapshot of every component for the status endpoint.

        Never raises. The store ping is bounded by ``timeout_seconds``; a
        store that does not answer in time counts as disconnected.
        """
        start = time.perf_counter()
        store_ok = False
        if self._store is not None:
            try:
                store_ok = await asyncio.wait_for(self._store.ping(), timeout=timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning("Cache store ping timed out", extra={"timeout": timeout_seconds})

        browser_status = self._browser.get_status() if self._browser else None
        if not self._initialized or not store_ok:
            status = "UNHEALTHY"
        elif browser_status is not None and browser_status["disconnects"] > 0 and not browser_status["connected"]:
            status = "DEGRADED"
        else:
            status = "HEALTHY"

        return {
            "status": status,
            "timestamp": time.time(),
            "duration_ms": round(_elapsed_ms(start), 2),
            "initialized": self._initialized,
            "cache_store": {"connected": store_ok},
            "cache": self._accessor.get_status() if self._accessor else None,
            "browser": self._browser.get_status() if self._browser else None,
            "queues": {
                queue.name: queue.get_status()
                for queue in (self._castle_queue, self._render_queue)
                if queue is not None
            },
            "database": self._database.get_status() if self._database else None,
        }

    # ========================================================================
    # PROPERTIES
    # ========================================================================

    def _require(self, value: Any, name: str) -> Any:
        if not self._initialized or value is None:
            raise RuntimeError(f"{name} not available: ApplicationContext not initialized")
        return value

    @property
    def players(self) -> PlayerService:
        return self._require(self._players, "PlayerService")

    @property
    def castle(self) -> CastleService:
        return self._require(self._castle, "CastleService")

    @property
    def assets(self) -> AssetService:
        return self._require(self._assets, "AssetService")

    @property
    def versions(self) -> VersionRegistry:
        return self._require(self._versions, "VersionRegistry")

    @property
    def registry(self) -> ServerRegistry:
        return self._require(self._registry, "ServerRegistry")

    @property
    def is_initialized(self) -> bool:
        """Check if context is fully initialized."""
        return self._initialized


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
