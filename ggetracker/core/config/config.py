"""
Static configuration for the GGE Tracker API.

Every setting is a typed class attribute on ``Config``, read from the
environment (``.env`` files included, via python-dotenv) when the module is
imported. A malformed or out-of-range value never breaks the import: the
default is kept and the problem is recorded so ``Config.validate()`` can
report it at startup.

Settings
--------
=========================  =================================================
ENVIRONMENT                development / testing / staging / production
LOG_LEVEL, LOG_JSON,       console logging (JSON defaults on in production)
LOG_COLORS
REDIS_URL, REDIS_*         cache store connection
CACHE_DEFAULT_TTL          accessor TTL when a caller gives none (seconds)
DATABASE_URL_TEMPLATE      SQLAlchemy DSN with a ``{database}`` placeholder
DATABASE_POOL_SIZE         per-server pool size
EMPIRE_API_URL             live game proxy
ASSETS_BASE_URL            sprite sheets and asset scripts
CDN_PROXY_URL              fetch rewrite proxy
HTTP_TIMEOUT_SECONDS       upstream timeout
FETCH_RETRY_ATTEMPTS       producer retry attempts
BROWSER_HEADLESS           Chromium headless mode
API_HOST, API_PORT         uvicorn bind address
=========================  =================================================

Fill versions are the one runtime-mutable knob and live in the cache store,
not here.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

load_dotenv()

_TRUE = frozenset({"true", "yes", "1", "on"})
_FALSE = frozenset({"false", "no", "0", "off"})


class Environment(Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse an environment name; unknown names mean development.

        >>> Environment.from_string("PRODUCTION") is Environment.PRODUCTION
        True
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            # Runs before the structured logger exists
            logging.warning("Unknown environment %r, defaulting to development", value)
            return cls.DEVELOPMENT


@dataclass
class ConfigLoadReport:
    """Where each setting came from during the last load."""

    from_environment: List[str] = field(default_factory=list)
    from_defaults: List[str] = field(default_factory=list)
    validation_errors: Dict[str, str] = field(default_factory=dict)
    loaded_at: Optional[str] = None

    def reject(self, key: str, message: str) -> None:
        logging.warning(message)
        self.validation_errors[key] = message

    def summary(self) -> Dict[str, Any]:
        return {
            "total_configs": len(self.from_environment) + len(self.from_defaults),
            "from_environment": len(self.from_environment),
            "from_defaults": len(self.from_defaults),
            "validation_errors": len(self.validation_errors),
            "defaults_used": list(self.from_defaults),
            "last_reload": self.loaded_at,
        }


class Config:
    """
    Process-wide static settings. Never instantiated.

    >>> Config.CACHE_DEFAULT_TTL
    1200
    """

    _report: ConfigLoadReport = ConfigLoadReport()
    _validated: bool = False

    # --- environment ---------------------------------------------------------
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_COLORS: bool = True

    # --- cache store ---------------------------------------------------------
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 50
    REDIS_SOCKET_TIMEOUT: int = 5
    CACHE_DEFAULT_TTL: int = 1_200

    # --- game databases ------------------------------------------------------
    DATABASE_URL_TEMPLATE: str = "postgresql+asyncpg://localhost:5432/{database}"
    DATABASE_POOL_SIZE: int = 5
    DATABASE_ECHO: bool = False

    # --- upstream ------------------------------------------------------------
    EMPIRE_API_URL: str = "http://localhost:3000"
    ASSETS_BASE_URL: str = "https://empire-html5.goodgamestudios.com/default"
    CDN_PROXY_URL: str = "https://cdn.gge-tracker.com"
    HTTP_TIMEOUT_SECONDS: int = 15
    FETCH_RETRY_ATTEMPTS: int = 3

    # --- rendering -----------------------------------------------------------
    BROWSER_HEADLESS: bool = True

    # --- HTTP server ---------------------------------------------------------
    API_NAME: str = "gge-tracker-api"
    API_VERSION: str = "25.11.02-beta"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3000

    # =========================================================================
    # Parsing helpers
    # =========================================================================

    @classmethod
    def _record(cls, key: str, from_env: bool) -> None:
        (cls._report.from_environment if from_env else cls._report.from_defaults).append(key)

    @classmethod
    def _safe_str(cls, key: str, default: str) -> str:
        raw = os.getenv(key)
        cls._record(key, raw is not None)
        return default if raw is None else raw

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Integer setting, bounds inclusive. Bad input keeps the default.

        >>> Config._safe_int("DATABASE_POOL_SIZE", 5, min_val=1, max_val=100)
        5
        """
        raw = os.getenv(key)
        if raw is None:
            cls._record(key, False)
            return default

        try:
            value = int(raw)
        except ValueError:
            cls._report.reject(key, f"{key}={raw!r} is not an integer, using {default}")
            return default

        if (min_val is not None and value < min_val) or (max_val is not None and value > max_val):
            cls._report.reject(
                key, f"{key}={value} outside [{min_val}, {max_val}], using {default}"
            )
            return default

        cls._record(key, True)
        return value

    @classmethod
    def _parse_bool(cls, key: str, raw: str) -> Optional[bool]:
        normalized = raw.strip().lower()
        if normalized in _TRUE:
            return True
        if normalized in _FALSE:
            return False
        cls._report.reject(key, f"{key}={raw!r} is not a boolean")
        return None

    @classmethod
    def _safe_bool(cls, key: str, default: bool) -> bool:
        """Accepts true/false, yes/no, 1/0 and on/off in any case."""
        value = cls._safe_optional_bool(key)
        return default if value is None else value

    @classmethod
    def _safe_optional_bool(cls, key: str) -> Optional[bool]:
        raw = os.getenv(key)
        if raw is None:
            cls._record(key, False)
            return None
        value = cls._parse_bool(key, raw)
        if value is not None:
            cls._record(key, True)
        return value

    # =========================================================================
    # Loading & validation
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """(Re)read every setting from the environment."""
        cls._report = ConfigLoadReport()

        cls.ENVIRONMENT = cls._safe_str("ENVIRONMENT", "development")
        cls.DEBUG = cls._safe_bool("DEBUG", False)
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO")
        cls.LOG_JSON = cls._safe_optional_bool("LOG_JSON")
        cls.LOG_COLORS = cls._safe_bool("LOG_COLORS", True)

        cls.REDIS_URL = cls._safe_str("REDIS_URL", "redis://localhost:6379/0")
        cls.REDIS_MAX_CONNECTIONS = cls._safe_int("REDIS_MAX_CONNECTIONS", 50, 1, 500)
        cls.REDIS_SOCKET_TIMEOUT = cls._safe_int("REDIS_SOCKET_TIMEOUT", 5, 1, 60)
        cls.CACHE_DEFAULT_TTL = cls._safe_int("CACHE_DEFAULT_TTL", 1_200, 1, 7 * 24 * 3600)

        cls.DATABASE_URL_TEMPLATE = cls._safe_str(
            "DATABASE_URL_TEMPLATE", "postgresql+asyncpg://localhost:5432/{database}"
        )
        cls.DATABASE_POOL_SIZE = cls._safe_int("DATABASE_POOL_SIZE", 5, 1, 100)
        cls.DATABASE_ECHO = cls._safe_bool("DATABASE_ECHO", False)

        cls.EMPIRE_API_URL = cls._safe_str("EMPIRE_API_URL", "http://localhost:3000")
        cls.ASSETS_BASE_URL = cls._safe_str(
            "ASSETS_BASE_URL", "https://empire-html5.goodgamestudios.com/default"
        )
        cls.CDN_PROXY_URL = cls._safe_str("CDN_PROXY_URL", "https://cdn.gge-tracker.com")
        cls.HTTP_TIMEOUT_SECONDS = cls._safe_int("HTTP_TIMEOUT_SECONDS", 15, 1, 300)
        cls.FETCH_RETRY_ATTEMPTS = cls._safe_int("FETCH_RETRY_ATTEMPTS", 3, 1, 10)

        cls.BROWSER_HEADLESS = cls._safe_bool("BROWSER_HEADLESS", True)

        cls.API_HOST = cls._safe_str("API_HOST", "0.0.0.0")
        cls.API_PORT = cls._safe_int("API_PORT", 3000, 1, 65535)

        cls._report.loaded_at = datetime.now(timezone.utc).isoformat()

    @classmethod
    def validate(cls) -> None:
        """
        Reload and sanity-check settings before the server starts.

        Raises
        ------
        ValueError
            In production, when the database template has no ``{database}``
            placeholder. Other environments only log the problem.
        """
        if cls._validated:
            return

        logger = logging.getLogger(__name__)
        cls.load()

        if cls.LOG_LEVEL.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            logger.warning("Invalid LOG_LEVEL %r, using INFO", cls.LOG_LEVEL)
            cls.LOG_LEVEL = "INFO"

        if cls.is_production() and "localhost" in cls.REDIS_URL:
            logger.warning("Production environment is pointed at a localhost Redis")

        if "{database}" not in cls.DATABASE_URL_TEMPLATE:
            message = "DATABASE_URL_TEMPLATE must contain a '{database}' placeholder"
            if cls.is_production():
                logger.error(message)
                raise ValueError(message)
            logger.warning(message)

        logger.info("Configuration loaded", extra={"config_summary": cls._report.summary()})
        if cls._report.validation_errors:
            logger.warning(
                "Configuration warnings",
                extra={"validation_errors": cls._report.validation_errors},
            )
        cls._validated = True

    # =========================================================================
    # Environment checks
    # =========================================================================

    @classmethod
    def environment(cls) -> Environment:
        return Environment.from_string(cls.ENVIRONMENT)

    @classmethod
    def is_production(cls) -> bool:
        return cls.environment() is Environment.PRODUCTION

    @classmethod
    def is_development(cls) -> bool:
        return cls.environment() is Environment.DEVELOPMENT

    @classmethod
    def is_testing(cls) -> bool:
        return cls.environment() is Environment.TESTING

    # =========================================================================
    # Introspection
    # =========================================================================

    @classmethod
    def get_metrics(cls) -> ConfigLoadReport:
        return cls._report

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """Non-sensitive settings only; URLs and DSNs are left out."""
        return {
            "environment": cls.ENVIRONMENT,
            "debug": cls.DEBUG,
            "log_level": cls.LOG_LEVEL,
            "cache_default_ttl": cls.CACHE_DEFAULT_TTL,
            "redis_max_connections": cls.REDIS_MAX_CONNECTIONS,
            "database_pool_size": cls.DATABASE_POOL_SIZE,
            "fetch_retry_attempts": cls.FETCH_RETRY_ATTEMPTS,
            "browser_headless": cls.BROWSER_HEADLESS,
            "api_version": cls.API_VERSION,
        }


Config.load()
