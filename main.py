"""
Production entrypoint for the property listings API.

Binds to 0.0.0.0:$PORT.
"""

import logging
import os

import uvicorn

from utils.logging import configure_logging

if __name__ == "__main__":
    configure_logging()
    port = int(os.getenv("PORT", "8000"))
    logging.getLogger(__name__).info("Starting property listings API on port %s", port)

    # Import app here to ensure clean module loading
    from web.app import app

    uvicorn.run(app, host="0.0.0.0", port=port)
