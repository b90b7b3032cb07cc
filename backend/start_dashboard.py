"""
HITL Status Dashboard

Terminal dashboard that polls a node's health endpoints and shows
colour-coded status and sync freshness.

Usage:
  python start_dashboard.py --base-url http://node.internal:8080
  python start_dashboard.py --once    # fetch once, print a single frame

Press Enter to refresh immediately, Ctrl-C to quit.
"""

import argparse
import asyncio
import signal
import sys
from typing import Set

from dotenv import load_dotenv

# Load environment variables FIRST before importing config
load_dotenv()

from rich.console import Console
from rich.live import Live

from config import settings
from services.dashboard_render import render_dashboard
from services.status_dashboard import StatusDashboard
from utils.logging import configure_logging, get_logger

# Dashboard owns the terminal; keep log output readable and quiet
configure_logging(service_name="status-dashboard", log_level="WARNING", enable_json=False)

logger = get_logger("status-dashboard")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Poll and display node health")
    parser.add_argument("--base-url", default=settings.DASHBOARD_BASE_URL, help="Node base URL")
    parser.add_argument("--interval", type=float, default=settings.DASHBOARD_POLL_INTERVAL, help="Seconds between health polls")
    parser.add_argument("--once", action="store_true", help="Fetch once and print a single frame")
    return parser.parse_args(argv)


async def run_once(dashboard: StatusDashboard, console: Console) -> int:
    await asyncio.gather(dashboard.capture_served_by(), dashboard.fetch_health(), dashboard.fetch_metrics())
    console.print(render_dashboard(dashboard.state))
    return 0


class ManualRefresher:
    """Starts refreshes on keypress and holds the tasks until they finish."""

    def __init__(self, dashboard: StatusDashboard):
        self.dashboard = dashboard
        self.tasks: Set[asyncio.Task] = set()

    def trigger(self) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self.dashboard.refresh())
        self.tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task):
        self.tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Manual refresh failed", error=str(task.exception()))

    async def cancel_all(self):
        pending = list(self.tasks)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)


async def run_live(args: argparse.Namespace, console: Console) -> int:
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    with Live(console=console, auto_refresh=False) as live:
        def on_change(state):
            live.update(render_dashboard(state), refresh=True)

        dashboard = StatusDashboard(base_url=args.base_url, poll_interval=args.interval, on_change=on_change)

        refresher = ManualRefresher(dashboard)

        def on_enter():
            sys.stdin.readline()
            refresher.trigger()

        if sys.stdin.isatty():
            loop.add_reader(sys.stdin, on_enter)

        try:
            await dashboard.start()
            await stop_event.wait()
        finally:
            if sys.stdin.isatty():
                loop.remove_reader(sys.stdin)
            await refresher.cancel_all()
            await dashboard.stop()
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    console = Console()
    if args.once:
        dashboard = StatusDashboard(base_url=args.base_url, poll_interval=args.interval)
        return asyncio.run(run_once(dashboard, console))
    return asyncio.run(run_live(args, console))


if __name__ == "__main__":
    raise SystemExit(main())
