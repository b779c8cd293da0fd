"""
Core infrastructure layer for the GGE Tracker API.

- Configuration (Config)
- Logging (structured logging, logger factory, log context)
- Cache store (Redis) and the cache-aside layer
- Admission queues and the headless browser lifecycle
- Upstream HTTP client and per-server database engines
- Domain exceptions (TrackerError hierarchy)
"""
