"""
Utility modules for the listings service.
"""

from .formatting import format_area, format_currency, format_gst
from .config import Config
from .logging import configure_logging

__all__ = ["format_area", "format_currency", "format_gst", "Config", "configure_logging"]
