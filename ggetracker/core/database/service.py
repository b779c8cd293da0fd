"""
Database Service - per-server SQL engines

Purpose
-------
Own one async SQLAlchemy engine per game server. Each server has its own
relational database; engines are created lazily on first use from
``DATABASE_URL_TEMPLATE`` and shared for the lifetime of the process.

Responsibilities
----------------
- Lazily create an AsyncEngine per server with connection pooling
- Provide read sessions as async context managers
- Expose per-server health checks
- Dispose every engine on shutdown

Non-Responsibilities
--------------------
- SQL correctness of the queries run through sessions
- Caching (callers go through the cache accessor)
- Migrations or schema management

Architecture Notes
------------------
- QueuePool in normal environments, NullPool when testing
- Engine creation is guarded by an asyncio.Lock so concurrent first
  requests on one server build one engine
- The API only reads; sessions never commit
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from ggetracker.core.config.config import Config
from ggetracker.core.exceptions import ConfigurationError
from ggetracker.core.logging.logger import get_logger
from ggetracker.modules.servers.registry import GameServer

logger = get_logger(__name__)


class DatabaseService:
    """
    Per-server async engine and session management.

    Example
    -------
    >>> async with database.session(registry.get("DE1")) as session:
    ...     rows = (await session.execute(text("SELECT 1"))).all()
    """

    def __init__(
        self,
        url_template: Optional[str] = None,
        pool_size: Optional[int] = None,
        echo: Optional[bool] = None,
    ) -> None:
        self._url_template = url_template or Config.DATABASE_URL_TEMPLATE
        self._pool_size = pool_size or Config.DATABASE_POOL_SIZE
        self._echo = Config.DATABASE_ECHO if echo is None else echo
        self._engines: Dict[str, AsyncEngine] = {}
        self._session_factories: Dict[str, async_sessionmaker[AsyncSession]] = {}
        self._lock = asyncio.Lock()

        if "{database}" not in self._url_template:
            raise ConfigurationError(
                "DATABASE_URL_TEMPLATE",
                "must contain a '{database}' placeholder",
            )

    # ========================================================================
    # Engines
    # ========================================================================

    def url_for(self, server: GameServer) -> str:
        return self._url_template.format(database=server.sql_database)

    async def engine(self, server: GameServer) -> AsyncEngine:
        """Return the server's engine, creating it on first use."""
        engine = self._engines.get(server.name)
        if engine is not None:
            return engine

        async with self._lock:
            engine = self._engines.get(server.name)
            if engine is not None:
                return engine

            engine_kwargs: Dict[str, Any] = {"echo": self._echo}
            if Config.is_testing():
                engine_kwargs["poolclass"] = NullPool
            else:
                engine_kwargs.update(
                    {
                        "pool_size": self._pool_size,
                        "max_overflow": self._pool_size * 2,
                        "pool_recycle": 1800,
                        "pool_pre_ping": True,
                    }
                )

            engine = create_async_engine(self.url_for(server), **engine_kwargs)
            self._engines[server.name] = engine
            self._session_factories[server.name] = async_sessionmaker(
                bind=engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )

            logger.info(
                "Database engine created",
                extra={"server": server.name, "database": server.sql_database},
            )
            return engine

    @asynccontextmanager
    async def session(self, server: GameServer) -> AsyncGenerator[AsyncSession, None]:
        """Read session bound to the server's database."""
        await self.engine(server)
        factory = self._session_factories[server.name]
        async with factory() as session:
            yield session

    # ========================================================================
    # Health Check
    # ========================================================================

    async def health_check(self, server: GameServer) -> bool:
        """
        Run ``SELECT 1`` against a server's database.

        Returns False instead of raising on failure.
        """
        start = time.perf_counter()
        try:
            engine = await self.engine(server)
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (OperationalError, DBAPIError, OSError) as exc:
            logger.warning(
                "Database health check failed",
                extra={
                    "server": server.name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            return False

        logger.debug(
            "Database health check completed",
            extra={
                "server": server.name,
                "duration_ms": round((time.perf_counter() - start) * 1000.0, 2),
            },
        )
        return True

    def get_status(self) -> Dict[str, Any]:
        return {"engines": sorted(self._engines)}

    # ========================================================================
    # Shutdown
    # ========================================================================

    async def shutdown(self) -> None:
        """Dispose every engine. Safe to call multiple times."""
        async with self._lock:
            engines = list(self._engines.items())
            self._engines.clear()
            self._session_factories.clear()

        for name, engine in engines:
            try:
                await engine.dispose()
            except (OperationalError, DBAPIError, OSError) as exc:
                logger.error(
                    "Error during database engine disposal",
                    extra={
                        "server": name,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )

        if engines:
            logger.info("DatabaseService shutdown complete", extra={"engines": len(engines)})
