"""
Pytest Configuration and Fixtures for the GGE Tracker API Tests
================================================================

Purpose
-------
Centralized test fixtures and configuration for the GGE Tracker test suite.

Responsibilities
----------------
- Testcontainers setup for Redis and PostgreSQL (integration tests)
- In-memory cache store with a controllable clock (unit tests)
- Recording job context for admission queue tests
- Stub headless browser and pages (no Chromium needed)
- httpx.MockTransport upstream for the game proxy and the asset host

Architecture Notes
------------------
- Unit tests use fakes (fast, isolated)
- Integration tests use testcontainers (real Redis / PostgreSQL)
- Fixtures follow scope hierarchy: session > function
"""

from __future__ import annotations

import os

os.environ["ENVIRONMENT"] = "testing"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["LOG_JSON"] = "false"
os.environ["LOG_COLORS"] = "false"

import json
from typing import Any, Callable, Dict, Generator, List, Optional, Tuple

import httpx
import pytest
from testcontainers.postgres import PostgresContainer
from testcontainers.redis import RedisContainer

from ggetracker.core.cache.accessor import CacheAccessor
from ggetracker.core.cache.versions import VersionRegistry
from ggetracker.core.config import Config
from ggetracker.core.http.upstream import UpstreamClient
from ggetracker.core.logging.logger import get_logger
from ggetracker.core.http.retry_policy import RetryPolicy

logger = get_logger(__name__)

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Reload configuration with the test environment."""
    Config.load()


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def redis_container() -> Generator[RedisContainer, None, None]:
    """
    Start Redis testcontainer for integration tests.

    Scope: session (container persists across all tests)
    """
    logger.info("Starting Redis testcontainer...")
    container = RedisContainer(image="redis:7-alpine")
    container.start()

    logger.info(
        "Redis testcontainer started: %s:%s",
        container.get_container_host_ip(),
        container.get_exposed_port(6379),
    )

    yield container

    logger.info("Stopping Redis testcontainer...")
    container.stop()


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL testcontainer for integration tests.

    Scope: session (container persists across all tests)
    """
    logger.info("Starting PostgreSQL testcontainer...")
    container = PostgresContainer(image="postgres:17-alpine", driver="asyncpg")
    container.start()

    logger.info("PostgreSQL testcontainer started: %s", container.get_connection_url())

    yield container

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


@pytest.fixture
def redis_url(redis_container: RedisContainer) -> str:
    host = redis_container.get_container_host_ip()
    port = redis_container.get_exposed_port(6379)
    return f"redis://{host}:{port}/0"


# ============================================================================
# CACHE STORE FAKES (Unit Tests)
# ============================================================================


class FakeClock:
    """Manually advanced clock (seconds)."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryCacheStore:
    """
    Cache store honouring TTLs against a FakeClock.

    Failure switches make the store raise like an unreachable Redis.
    """

    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.fail_incr = False
        self.get_calls: List[str] = []
        self.set_calls: List[Tuple[str, int, str]] = []

    async def get(self, key: str) -> Optional[str]:
        self.get_calls.append(key)
        if self.fail_reads:
            raise ConnectionError("store unreachable")
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def set_with_expiry(self, key: str, ttl_seconds: int, value: str) -> None:
        if self.fail_writes:
            raise ConnectionError("store unreachable")
        self.set_calls.append((key, ttl_seconds, value))
        self._data[key] = (value, self._clock() + ttl_seconds)

    async def incr(self, key: str) -> int:
        if self.fail_incr:
            raise ConnectionError("store unreachable")
        value, expires_at = self._data.get(key, ("0", None))
        new_value = int(value) + 1
        self._data[key] = (str(new_value), expires_at)
        return new_value

    async def ping(self) -> bool:
        return not self.fail_reads

    def put(self, key: str, value: str) -> None:
        """Seed a value without expiry."""
        self._data[key] = (value, None)

    def peek(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        return entry[0] if entry else None

    def keys(self) -> List[str]:
        return sorted(self._data)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryCacheStore:
    return InMemoryCacheStore(clock)


@pytest.fixture
def versions(store: InMemoryCacheStore) -> VersionRegistry:
    return VersionRegistry(store)


@pytest.fixture
def accessor(store: InMemoryCacheStore, versions: VersionRegistry) -> CacheAccessor:
    return CacheAccessor(store, versions, default_ttl=1_200)


# ============================================================================
# ADMISSION QUEUE FAKES
# ============================================================================


class RecordingContext:
    """Job context that records how it was finalized."""

    def __init__(self, label: str = "") -> None:
        self.label = label
        self.results: List[Any] = []
        self.errors: List[BaseException] = []

    @property
    def finalized(self) -> bool:
        return bool(self.results or self.errors)

    def send(self, value: Any) -> None:
        self.results.append(value)

    def fail(self, error: BaseException) -> None:
        self.errors.append(error)


@pytest.fixture
def make_context() -> Callable[..., RecordingContext]:
    return RecordingContext


# ============================================================================
# HEADLESS BROWSER STUBS
# ============================================================================


class StubPage:
    """Playwright page stand-in answering evaluate() from a script list."""

    def __init__(self, evaluations: List[Any]) -> None:
        self._evaluations = list(evaluations)
        self.script_urls: List[str] = []
        self.evaluate_calls: List[Tuple[str, Any]] = []
        self.closed = False

    async def add_script_tag(self, url: str) -> None:
        self.script_urls.append(url)

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        self.evaluate_calls.append((expression, arg))
        result = self._evaluations.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result

    async def close(self) -> None:
        self.closed = True


class StubBrowser:
    """Playwright browser stand-in with a controllable connection."""

    def __init__(self, evaluations: Optional[List[Any]] = None) -> None:
        self.connected = True
        self.closed = False
        self.pages: List[StubPage] = []
        self.evaluations = evaluations or []
        self._handlers: Dict[str, List[Callable[..., None]]] = {}

    def is_connected(self) -> bool:
        return self.connected

    def on(self, event: str, handler: Callable[..., None]) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def disconnect(self) -> None:
        self.connected = False
        for handler in self._handlers.get("disconnected", []):
            handler(self)

    async def new_page(self) -> StubPage:
        page = StubPage(self.evaluations)
        self.pages.append(page)
        return page

    async def close(self) -> None:
        self.closed = True
        self.connected = False


class StubLauncher:
    """Launcher returning a fresh StubBrowser per call."""

    def __init__(self, evaluations: Optional[List[Any]] = None) -> None:
        self.evaluations = evaluations
        self.browsers: List[StubBrowser] = []
        self.fail_with: Optional[BaseException] = None

    async def __call__(self) -> StubBrowser:
        if self.fail_with is not None:
            raise self.fail_with
        browser = StubBrowser(self.evaluations)
        self.browsers.append(browser)
        return browser


@pytest.fixture
def launcher() -> StubLauncher:
    return StubLauncher()


# ============================================================================
# UPSTREAM (httpx.MockTransport)
# ============================================================================


class MockUpstream:
    """
    Route table for httpx.MockTransport.

    Routes map a URL path (query excluded) to a status code and a body, or to
    a list of those answered in order. Every request is recorded.
    """

    def __init__(self) -> None:
        self.routes: Dict[str, Any] = {}
        self.requests: List[httpx.Request] = []

    def add(self, path: str, status: int = 200, body: Any = None) -> None:
        self.routes[path] = (status, body)

    def add_sequence(self, path: str, responses: List[Tuple[int, Any]]) -> None:
        self.routes[path] = list(responses)

    def calls(self, path: str) -> int:
        return sum(1 for request in self.requests if request.url.path == path)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        if isinstance(route, list):
            status, body = route.pop(0) if len(route) > 1 else route[0]
        else:
            status, body = route
        if body is None:
            return httpx.Response(status)
        if isinstance(body, (bytes, str)):
            return httpx.Response(status, content=body)
        return httpx.Response(status, content=json.dumps(body).encode())

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def mock_upstream() -> MockUpstream:
    return MockUpstream()


@pytest.fixture
async def upstream(mock_upstream: MockUpstream):
    client = UpstreamClient(
        retry_policy=RetryPolicy(max_attempts=3),
        empire_api_url="http://proxy.test",
        cdn_proxy_url="https://cdn.test/proxy",
        transport=mock_upstream.transport,
    )
    yield client
    await client.close()
