"""
GGE Tracker API - Application Entry Point
=========================================

Lifecycle:
    1. Validate configuration
    2. Build the FastAPI application (the context initializes on startup)
    3. Serve under uvicorn until SIGINT / SIGTERM
    4. Shut the context down and flush logging
"""

import sys

import uvicorn

from ggetracker.api.app import create_app
from ggetracker.core.config import Config
from ggetracker.core.logging.logger import get_logger, shutdown_logging

logger = get_logger(__name__)


def main() -> None:
    try:
        Config.validate()
        logger.info("✓ Configuration validated")
    except Exception as exc:
        logger.critical(f"Configuration validation failed: {exc}")
        shutdown_logging()
        sys.exit(1)

    logger.info(
        "Starting %s %s on %s:%d",
        Config.API_NAME,
        Config.API_VERSION,
        Config.API_HOST,
        Config.API_PORT,
    )

    try:
        # uvicorn keeps the logging setup done by ggetracker.core.logging
        uvicorn.run(create_app(), host=Config.API_HOST, port=Config.API_PORT, log_config=None)
    except KeyboardInterrupt:
        logger.info("API manually stopped via keyboard interrupt.")
    finally:
        shutdown_logging()


if __name__ == "__main__":
    main()
