"""
Shared datetime utilities for snapshot timestamps and sync markers.

Snapshot timestamps are always written as second-precision UTC ISO 8601
("2025-08-31T10:00:00Z"); parsing is lenient so that markers written by
other tools (e.g. `date -u` output with offsets) are still understood.
"""

from datetime import datetime, timezone
from typing import Optional

from dateutil.parser import parse as dateutil_parse

from utils.logging import get_logger

logger = get_logger(__name__)

ISO_UTC_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_iso_utc(value: Optional[datetime] = None) -> str:
    """Format a datetime (default: now) as second-precision UTC ISO 8601."""
    if value is None:
        value = utc_now()
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(ISO_UTC_FORMAT)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a timestamp string into an aware UTC datetime.

    Naive values are assumed to be UTC. Returns None for empty or
    unparseable input instead of raising.
    """
    if value is None:
        return None

    text = value.strip()
    if not text:
        return None

    try:
        parsed = dateutil_parse(text)
    except (ValueError, OverflowError) as e:
        logger.debug("Unparseable timestamp", value=text, error=str(e))
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def seconds_between(earlier: datetime, later: datetime) -> int:
    """Whole seconds from earlier to later (negative if earlier is in the future)."""
    return int((later - earlier).total_seconds())
