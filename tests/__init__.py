"""
GGE Tracker API test suite.

- tests/unit/         fakes only: in-memory cache store, stub browser,
                      httpx.MockTransport upstream
- tests/integration/  real Redis and PostgreSQL through testcontainers

Run ``pytest -m "not integration"`` when Docker is not available.
"""
