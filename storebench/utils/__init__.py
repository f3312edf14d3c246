"""
Utilities package for storebench.

Exports shared helpers for logging and profiling. Keep this package lightweight
and free of engine-specific logic.
"""

from storebench.utils.logging import configure_logging, get_logger
from storebench.utils.profiler import ProfileStats, profile_block

__all__ = [
    "configure_logging",
    "get_logger",
    "ProfileStats",
    "profile_block",
]
