"""
Date and Time utilities

XMLTV timestamp formatting and the grid time window schedule.
"""
from datetime import datetime, timezone
import logging

from zap2xmltv.models import TimeWindow

logger = logging.getLogger(__name__)

SECONDS_IN_HOUR = 3600
SECONDS_IN_HALF_HOUR = 1800
SECONDS_IN_DAY = 24 * SECONDS_IN_HOUR


def format_xmltv_time(value: str) -> str:
    """
    Convert a grid API timestamp to XMLTV form by literal substitution

    '2024-01-02T15:04:05Z' becomes '20240102150405 +0000'. No timezone
    conversion is performed.

    Args:
        value: ISO8601-like timestamp from the grid API

    Returns:
        XMLTV timestamp string
    """
    compact = value.replace("-", "").replace(":", "").replace("T", "")
    if compact.endswith("Z"):
        compact = compact[:-1] + " +0000"
    return compact


def guide_start_epoch(now: datetime, backfill_hours: int = 24) -> int:
    """First window start: now minus backfill, rounded down to the half hour."""
    start = int(now.timestamp()) - backfill_hours * SECONDS_IN_HOUR
    return start - start % SECONDS_IN_HALF_HOUR


def build_time_windows(
    now: datetime | None = None,
    *,
    guide_days: int = 14,
    window_hours: int = 3,
    backfill_hours: int = 24,
) -> list[TimeWindow]:
    """
    Generate the fixed-width windows covering the whole guide span

    Windows stride from (now - backfill) rounded down to the half hour while
    their start is before now + guide_days.

    Args:
        now: Reference time (defaults to current UTC time)
        guide_days: Days of listings after now
        window_hours: Width of each window
        backfill_hours: Hours of listings before now

    Returns:
        Ordered list of half-open TimeWindow values
    """
    if now is None:
        now = datetime.now(timezone.utc)

    start = guide_start_epoch(now, backfill_hours)
    end = int(now.timestamp()) + guide_days * SECONDS_IN_DAY
    step = window_hours * SECONDS_IN_HOUR

    windows = [TimeWindow(start=t, end=t + step) for t in range(start, end, step)]
    logger.debug(
        "Built %s windows from %s to %s",
        len(windows),
        datetime.fromtimestamp(start, timezone.utc).isoformat(),
        datetime.fromtimestamp(end, timezone.utc).isoformat(),
    )
    return windows


def snapshot_timestamp(moment: datetime | None = None) -> str:
    """Local-time YYYYMMDDhhmmss stamp used in historical file names."""
    return (moment or datetime.now()).strftime("%Y%m%d%H%M%S")
