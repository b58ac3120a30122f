"""
Utility functions and performance helpers for dcsstats.

This module provides:
- Performance timing context manager
- Duration and timestamp formatting for reports
"""

import logging
import time
from datetime import UTC, datetime


logger = logging.getLogger(__name__)


class PerformanceMonitor:
    """
    Context manager for monitoring performance of code blocks.

    Usage:
        with PerformanceMonitor("reading source main"):
            read_source(...)
    """

    def __init__(self, operation_name: str, log_level: int = logging.INFO):
        self.operation_name = operation_name
        self.log_level = log_level
        self.start_time: float | None = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.perf_counter() - (self.start_time or 0)
        if exc_type is not None:
            logger.error(f"{self.operation_name} failed after {elapsed:.3f}s: {exc_val}")
        else:
            logger.log(self.log_level, f"{self.operation_name} completed in {elapsed:.3f}s")
        return False


def format_duration(seconds: int) -> str:
    """
    Format a play time in seconds to a human-readable string.

    Args:
        seconds: Duration in whole seconds

    Returns:
        Formatted string like "45s", "12m 05s" or "3h 02m 10s"
    """
    if seconds < 60:
        return f"{seconds}s"
    minutes, secs = divmod(seconds, 60)
    if minutes < 60:
        return f"{minutes}m {secs:02d}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m {secs:02d}s"


def format_timestamp(epoch_seconds: int | None) -> str:
    """Format epoch seconds as a UTC timestamp, '-' when unset."""
    if epoch_seconds is None:
        return "-"
    return datetime.fromtimestamp(epoch_seconds, tz=UTC).strftime("%Y-%m-%d %H:%M:%S")
