"""
Structured logging helpers for consistent log formatting.

Provides utilities for structured, clean logging without excessive decorative separators.
"""
import logging
from datetime import datetime, timezone

from zap2xmltv.models import TimeWindow


def log_window_processing(logger: logging.Logger, idx: int, total: int, window: TimeWindow) -> None:
    """
    Log grid window progress.

    Args:
        logger: Logger instance
        idx: Current window index (1-based)
        total: Total number of windows
        window: Window being fetched
    """
    start = datetime.fromtimestamp(window.start, timezone.utc).isoformat()
    logger.info(f"Fetching window {idx}/{total}: {start} (+{window.hours}h)")


def log_build_start(logger: logging.Logger) -> None:
    """Log guide build start."""
    logger.info(f"Guide build started at {datetime.now(timezone.utc).isoformat()}")


def log_build_end(logger: logging.Logger) -> None:
    """Log guide build end."""
    logger.info(f"Guide build completed at {datetime.now(timezone.utc).isoformat()}")


def log_guide_summary(
    logger: logging.Logger,
    channels_count: int,
    programmes_count: int
) -> None:
    """
    Log assembled guide summary.

    Args:
        logger: Logger instance
        channels_count: Number of channels in the guide
        programmes_count: Number of programmes in the guide
    """
    logger.info(f"Guide summary - Channels: {channels_count}, Programmes: {programmes_count}")
