"""
Utility modules for the listing engine.
"""

from .formatting import format_currency, format_percent, format_bed_bath
from .config import Config, parse_min_confidence
from .logging_config import configure_logging

__all__ = [
    "format_currency",
    "format_percent",
    "format_bed_bath",
    "Config",
    "parse_min_confidence",
    "configure_logging",
]
