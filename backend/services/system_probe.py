"""
Local system probes used by the health reporter.

Each probe catches its own failures and returns "unknown"/None for the
affected value, so one broken check never blocks the snapshot.
"""

import re
import subprocess
import time
from typing import Optional

import httpx
import psutil

from models.health import SystemMetrics, UNKNOWN, WebServerStatus
from utils.logging import get_logger

logger = get_logger("system-probe")

COMMAND_TIMEOUT = 5  # seconds
VERSION_PATTERN = re.compile(r"nginx/([0-9.]+)")


def _run(cmd: list) -> Optional[subprocess.CompletedProcess]:
    try:
        return subprocess.run(cmd, capture_output=True, text=True, timeout=COMMAND_TIMEOUT)
    except FileNotFoundError:
        logger.warning("Command not found", command=cmd[0])
    except subprocess.TimeoutExpired:
        logger.warning("Command timed out", command=" ".join(cmd))
    except OSError as e:
        logger.warning("Command failed", command=" ".join(cmd), error=str(e))
    return None


def is_unit_active(unit: str) -> bool:
    """Whether systemd reports the unit as active."""
    result = _run(["systemctl", "is-active", unit])
    return result is not None and result.returncode == 0


def get_main_pid(unit: str) -> Optional[str]:
    """Main PID of a systemd unit, or None if it has none."""
    result = _run(["systemctl", "show", unit, "-p", "MainPID", "--value"])
    if result is None or result.returncode != 0:
        return None
    pid = result.stdout.strip()
    if not pid or pid == "0":
        return None
    return pid


def get_web_server_version(binary: str) -> str:
    """Version parsed from `<binary> -v`, which nginx prints on stderr."""
    result = _run([binary, "-v"])
    if result is None:
        return UNKNOWN
    match = VERSION_PATTERN.search(result.stderr or "") or VERSION_PATTERN.search(result.stdout or "")
    return match.group(1) if match else UNKNOWN


def get_process_uptime(pid: Optional[str], now: Optional[float] = None) -> Optional[int]:
    """Seconds since the process started, or None if it cannot be determined."""
    if not pid:
        return None
    try:
        started = psutil.Process(int(pid)).create_time()
    except (ValueError, psutil.Error) as e:
        logger.warning("Could not read process start time", pid=pid, error=str(e))
        return None
    return int((now if now is not None else time.time()) - started)


async def probe_liveness(url: str, timeout: float, transport: Optional[httpx.AsyncBaseTransport] = None) -> bool:
    """Whether the web server answers its liveness URL with a 2xx status."""
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.get(url)
    except httpx.HTTPError as e:
        logger.info("Web server liveness probe failed", url=url, error=str(e))
        return False
    return response.is_success


def check_web_server(unit: str, binary: str) -> WebServerStatus:
    """
    Process-level web server check.

    `responding` is left False here; the reporter fills it from the
    liveness probe.
    """
    if not is_unit_active(unit):
        return WebServerStatus(status="inactive", responding=False)

    pid = get_main_pid(unit)
    return WebServerStatus(
        status="active",
        responding=False,
        version=get_web_server_version(binary),
        pid=pid,
        uptime_seconds=get_process_uptime(pid),
    )


def collect_system_metrics(disk_path: str = "/") -> SystemMetrics:
    """Load, memory, disk and uptime; each metric degrades independently."""
    metrics = SystemMetrics()

    try:
        metrics.load_average = ", ".join(f"{value:.2f}" for value in psutil.getloadavg())
    except (OSError, AttributeError) as e:
        logger.warning("Load average unavailable", error=str(e))

    try:
        metrics.memory_used_percent = round(psutil.virtual_memory().percent, 1)
    except (OSError, psutil.Error) as e:
        logger.warning("Memory usage unavailable", error=str(e))

    try:
        metrics.disk_used = f"{round(psutil.disk_usage(disk_path).percent)}%"
    except OSError as e:
        logger.warning("Disk usage unavailable", path=disk_path, error=str(e))

    try:
        metrics.uptime_seconds = int(time.time() - psutil.boot_time())
    except (OSError, psutil.Error) as e:
        logger.warning("Uptime unavailable", error=str(e))

    return metrics
