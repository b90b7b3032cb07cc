"""
Content sync marker handling.

The sync job writes a bare ISO 8601 UTC timestamp to the marker file after
every successful pull from remote storage; the reporter reads it back to
publish how old the served content is.
"""

from datetime import datetime
from typing import Optional

from models.health import ContentSyncStatus, UNKNOWN
from utils.datetime_utils import format_iso_utc, parse_timestamp, seconds_between, utc_now
from utils.file_utils import atomic_write
from utils.logging import get_logger

logger = get_logger("content-sync")


def read_sync_status(marker_path: str, now: Optional[datetime] = None) -> ContentSyncStatus:
    """
    Derive content sync status from the marker file.

    A missing, empty or unparseable marker yields status "unknown" and a
    null age; it is never an error.
    """
    try:
        with open(marker_path, "r", encoding="utf-8") as f:
            raw = f.read().strip()
    except FileNotFoundError:
        logger.debug("No sync marker found", path=marker_path)
        return ContentSyncStatus()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read sync marker", path=marker_path, error=str(e))
        return ContentSyncStatus()

    if not raw:
        return ContentSyncStatus()

    synced_at = parse_timestamp(raw)
    if synced_at is None:
        logger.warning("Unparseable sync marker", path=marker_path, value=raw)
        return ContentSyncStatus(status=UNKNOWN, last_sync=raw)

    return ContentSyncStatus(
        status="active",
        responding=True,
        last_sync=raw,
        seconds_since_last_sync=seconds_between(synced_at, now or utc_now()),
    )


def record_sync(marker_path: str, when: Optional[datetime] = None) -> str:
    """Atomically write the sync marker. Returns the timestamp written."""
    timestamp = format_iso_utc(when)
    atomic_write(marker_path, (timestamp + "\n").encode("utf-8"))
    logger.info("Recorded content sync", path=marker_path, timestamp=timestamp)
    return timestamp
