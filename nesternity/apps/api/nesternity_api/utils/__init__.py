"""Utility functions and helpers."""

from nesternity_api.utils.logging import JSONFormatter, configure_json_logging
from nesternity_api.utils.periods import month_window

__all__ = [
    "JSONFormatter",
    "configure_json_logging",
    "month_window",
]
