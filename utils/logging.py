"""Logging setup shared by the web server and scripts."""

from __future__ import annotations

import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Install a single stream handler on the root logger.

    Calling it again only updates the level.
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    root = logging.getLogger()

    if not any(getattr(h, "_listings_handler", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
        handler._listings_handler = True
        root.addHandler(handler)

    root.setLevel(level)
    return root
