"""Shared utility functions for Zynk."""

import logging
from datetime import UTC, date, datetime, time, timedelta, tzinfo

logger = logging.getLogger(__name__)


def now_utc() -> datetime:
    """Get current UTC time (timezone-aware)."""
    return datetime.now(UTC)


def start_of_day(day: date, tz: tzinfo | None = None) -> datetime:
    """Midnight at the start of `day`, in `tz` (naive when tz is None)."""
    return datetime.combine(day, time.min, tzinfo=tz)


def next_cycle_start(now: datetime) -> datetime:
    """Tomorrow at 00:00 in the timezone of `now`."""
    return start_of_day(now.date() + timedelta(days=1), now.tzinfo)


def format_address(street: str, postal_code: str | None = None, city: str | None = None) -> str:
    """Join address parts into the single-line form stored on deliveries."""
    parts = [p.strip() for p in (street, city, postal_code) if p and p.strip() and p.strip() != "NA"]
    return ", ".join(parts)


def setup_logging(verbose: bool = False) -> None:
    """
    Configure logging for the application.

    Args:
        verbose: If True, set DEBUG level; otherwise INFO.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
