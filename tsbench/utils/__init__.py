"""
Utilities package for the time-series storage benchmark.

Exports shared helpers for logging and profiling. Keep this package lightweight
and free of backend-specific logic.
"""

from tsbench.utils.logging import configure_logging, get_logger
from tsbench.utils.profiler import ProfileStats, profile_block

__all__ = [
    "configure_logging",
    "get_logger",
    "ProfileStats",
    "profile_block",
]
