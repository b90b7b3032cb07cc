"""
Tests for sync marker reading and writing.
"""

import os
from datetime import datetime, timezone

from services.content_sync import read_sync_status, record_sync

NOW = datetime(2025, 1, 25, 14, 31, 15, tzinfo=timezone.utc)


def write_marker(tmp_path, content):
    path = tmp_path / ".last-sync"
    path.write_text(content, encoding="utf-8")
    return str(path)


def test_recent_marker(tmp_path):
    status = read_sync_status(write_marker(tmp_path, "2025-01-25T14:30:30Z\n"), now=NOW)

    assert status.status == "active"
    assert status.responding is True
    assert status.last_sync == "2025-01-25T14:30:30Z"
    assert status.seconds_since_last_sync == 45


def test_missing_marker(tmp_path):
    status = read_sync_status(str(tmp_path / ".last-sync"), now=NOW)

    assert status.status == "unknown"
    assert status.last_sync == "unknown"
    assert status.seconds_since_last_sync is None


def test_empty_marker(tmp_path):
    status = read_sync_status(write_marker(tmp_path, "\n"), now=NOW)

    assert status.status == "unknown"
    assert status.seconds_since_last_sync is None


def test_unparseable_marker(tmp_path):
    status = read_sync_status(write_marker(tmp_path, "not a timestamp"), now=NOW)

    assert status.status == "unknown"
    assert status.last_sync == "not a timestamp"
    assert status.seconds_since_last_sync is None


def test_offset_timestamp_is_normalised(tmp_path):
    status = read_sync_status(write_marker(tmp_path, "2025-01-25T16:30:30+02:00"), now=NOW)
    assert status.seconds_since_last_sync == 45


def test_marker_in_the_future_gives_negative_age(tmp_path):
    status = read_sync_status(write_marker(tmp_path, "2025-01-25T14:31:25Z"), now=NOW)
    assert status.seconds_since_last_sync == -10


def test_marker_is_a_directory(tmp_path):
    (tmp_path / ".last-sync").mkdir()
    status = read_sync_status(str(tmp_path / ".last-sync"), now=NOW)
    assert status.status == "unknown"


def test_record_sync_round_trip(tmp_path):
    marker = str(tmp_path / "content" / ".last-sync")

    written = record_sync(marker, NOW)

    assert written == "2025-01-25T14:31:15Z"
    with open(marker, encoding="utf-8") as f:
        assert f.read() == "2025-01-25T14:31:15Z\n"
    assert read_sync_status(marker, now=NOW).seconds_since_last_sync == 0
    assert os.listdir(tmp_path / "content") == [".last-sync"]
