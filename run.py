#!/usr/bin/env python3
"""
Startup script for the TransplantFlow API
"""
import sys

import uvicorn

from transplantflow.config import get_settings
from transplantflow.core.logging import setup_logging


def main():
    """Start the FastAPI application."""
    settings = get_settings()
    logger = setup_logging()

    logger.info("Starting %s Server", settings.app_name)
    logger.info("Environment: %s", settings.environment)
    logger.info("Debug Mode: %s", settings.debug)
    logger.info("Record store: %s", settings.record_store_backend)

    config = {
        "app": "transplantflow.main:app",
        "host": settings.host,
        "port": settings.port,
        "reload": settings.debug,
        "log_level": settings.log_level.lower(),
        "access_log": True,
        "use_colors": settings.debug,
        # Debounced writes and partner syncs live in process memory
        "workers": 1,
    }

    logger.info("Starting server on %s:%s", config["host"], config["port"])

    try:
        uvicorn.run(**config)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error("Server error: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
