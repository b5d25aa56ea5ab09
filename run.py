#!/usr/bin/env python3
"""
Run the property listings API for local development.
"""

import logging

import uvicorn

from utils.config import Config
from utils.logging import configure_logging


def main():
    """Start the web server."""
    config = Config.load()
    configure_logging(config.log_level)

    logging.getLogger(__name__).info(
        "Starting property listings API on http://%s:%s (store: %s)",
        config.host, config.port, config.store_backend,
    )

    uvicorn.run(
        "web.app:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
    )


if __name__ == "__main__":
    main()
