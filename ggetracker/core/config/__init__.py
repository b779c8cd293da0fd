"""
Configuration subsystem for the GGE Tracker API.

Static configuration only: every value is read from the environment (with
.env support) once at startup. Fill versions, the only runtime-mutable
setting the API honours, live in the cache store instead.

Usage
-----
```python
from ggetracker.core.config import Config

ttl = Config.CACHE_DEFAULT_TTL
if Config.is_production():
    logger.info("Running in production mode")
```
"""

from ggetracker.core.config.config import Config, Environment

__all__ = [
    "Config",
    "Environment",
]
