"""
HITL Health Reporter

Standalone entry point for nodes where the snapshot is served straight from
disk by the web server and the API process is not running.

Usage:
  python start_reporter.py               # run forever, every REPORTER_INTERVAL_SECONDS
  python start_reporter.py --once        # write one snapshot and exit (cron mode)
  python start_reporter.py --mark-sync   # record a successful content sync and exit
"""

import argparse
import asyncio
import signal

from dotenv import load_dotenv

# Load environment variables FIRST before importing config
load_dotenv()

from config import settings
from services.content_sync import record_sync
from services.health_reporter import HealthReporterService
from utils.logging import configure_logging, get_logger

configure_logging(
    service_name="health-reporter",
    log_level=settings.LOG_LEVEL,
    enable_json=settings.LOG_JSON,
)

logger = get_logger("health-reporter")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Publish node health snapshots")
    parser.add_argument("--once", action="store_true", help="Write a single snapshot and exit")
    parser.add_argument("--output", default=None, help="Snapshot path (default: HEALTH_SNAPSHOT_PATH)")
    parser.add_argument("--sync-marker", default=None, help="Sync marker path (default: SYNC_MARKER_PATH)")
    parser.add_argument("--interval", type=float, default=None, help="Seconds between snapshots")
    parser.add_argument("--mark-sync", action="store_true", help="Record a successful content sync and exit")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    reporter = HealthReporterService(
        snapshot_path=args.output,
        sync_marker_path=args.sync_marker,
        interval_seconds=args.interval,
    )

    if args.once:
        snapshot = await reporter.run_once()
        logger.info("Snapshot written", path=reporter.snapshot_path, status=snapshot.status)
        return 0

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    await reporter.start()
    await stop_event.wait()
    await reporter.stop()
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    if args.mark_sync:
        record_sync(args.sync_marker or settings.SYNC_MARKER_PATH)
        return 0
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
