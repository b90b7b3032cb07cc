"""
Tests for local system probes (systemd, process and psutil backed checks).
"""

import subprocess
import time
from collections import namedtuple
from unittest.mock import MagicMock, patch

import httpx
import psutil
import pytest

from services import system_probe
from services.system_probe import (
    check_web_server,
    collect_system_metrics,
    get_main_pid,
    get_process_uptime,
    get_web_server_version,
    is_unit_active,
    probe_liveness,
)


def completed(cmd, returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)


def fake_commands(active=True, pid="1234", version_stderr="nginx version: openresty/1.21.4.1\nnginx/1.21.4"):
    """subprocess.run replacement answering systemctl and nginx -v."""
    def run(cmd, **kwargs):
        if cmd[:2] == ["systemctl", "is-active"]:
            return completed(cmd, 0 if active else 3, stdout="active\n" if active else "inactive\n")
        if cmd[:2] == ["systemctl", "show"]:
            return completed(cmd, 0, stdout=f"{pid}\n")
        if cmd[-1] == "-v":
            return completed(cmd, 0, stderr=version_stderr)
        raise AssertionError(f"unexpected command {cmd}")
    return run


class TestSystemdChecks:

    @patch("services.system_probe.subprocess.run")
    def test_unit_active(self, mock_run):
        mock_run.side_effect = fake_commands(active=True)
        assert is_unit_active("openresty") is True

    @patch("services.system_probe.subprocess.run")
    def test_unit_inactive(self, mock_run):
        mock_run.side_effect = fake_commands(active=False)
        assert is_unit_active("openresty") is False

    @patch("services.system_probe.subprocess.run")
    def test_systemctl_missing(self, mock_run):
        mock_run.side_effect = FileNotFoundError()
        assert is_unit_active("openresty") is False

    @patch("services.system_probe.subprocess.run")
    def test_systemctl_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd=["systemctl"], timeout=5)
        assert get_main_pid("openresty") is None

    @patch("services.system_probe.subprocess.run")
    def test_zero_pid_is_none(self, mock_run):
        mock_run.side_effect = fake_commands(pid="0")
        assert get_main_pid("openresty") is None

    @patch("services.system_probe.subprocess.run")
    def test_version_parsed_from_stderr(self, mock_run):
        mock_run.side_effect = fake_commands()
        assert get_web_server_version("/usr/local/openresty/nginx/sbin/nginx") == "1.21.4"

    @patch("services.system_probe.subprocess.run")
    def test_unrecognised_version_output(self, mock_run):
        mock_run.side_effect = fake_commands(version_stderr="something else")
        assert get_web_server_version("nginx") == "unknown"


class TestProcessUptime:

    def test_uptime_from_start_time(self):
        process = MagicMock()
        process.create_time.return_value = 1000.0
        with patch("services.system_probe.psutil.Process", return_value=process):
            assert get_process_uptime("1234", now=1120.5) == 120

    def test_missing_process(self):
        with patch("services.system_probe.psutil.Process", side_effect=psutil.NoSuchProcess(1234)):
            assert get_process_uptime("1234") is None

    def test_no_pid(self):
        assert get_process_uptime(None) is None

    def test_garbage_pid(self):
        assert get_process_uptime("abc") is None


class TestCheckWebServer:

    @patch("services.system_probe.get_process_uptime", return_value=300)
    @patch("services.system_probe.subprocess.run")
    def test_active(self, mock_run, mock_uptime):
        mock_run.side_effect = fake_commands()
        status = check_web_server("openresty", "nginx")

        assert status.status == "active"
        assert status.pid == "1234"
        assert status.version == "1.21.4"
        assert status.uptime_seconds == 300
        assert status.responding is False

    @patch("services.system_probe.subprocess.run")
    def test_inactive(self, mock_run):
        mock_run.side_effect = fake_commands(active=False)
        status = check_web_server("openresty", "nginx")

        assert status.status == "inactive"
        assert status.pid is None
        assert status.version is None
        assert mock_run.call_count == 1


class TestLivenessProbe:

    @pytest.mark.asyncio
    async def test_success(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="healthy\n"))
        assert await probe_liveness("http://127.0.0.1/health", 1.0, transport=transport) is True

    @pytest.mark.asyncio
    async def test_error_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(502))
        assert await probe_liveness("http://127.0.0.1/health", 1.0, transport=transport) is False

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)
        assert await probe_liveness("http://127.0.0.1/health", 1.0, transport=httpx.MockTransport(handler)) is False


class TestCollectSystemMetrics:

    def test_all_metrics(self, monkeypatch):
        Memory = namedtuple("Memory", "percent")
        Disk = namedtuple("Disk", "percent")
        monkeypatch.setattr(system_probe.psutil, "getloadavg", lambda: (0.1, 0.05, 0.0))
        monkeypatch.setattr(system_probe.psutil, "virtual_memory", lambda: Memory(42.46))
        monkeypatch.setattr(system_probe.psutil, "disk_usage", lambda path: Disk(36.8))
        boot = time.time() - 86400.5
        monkeypatch.setattr(system_probe.psutil, "boot_time", lambda: boot)

        metrics = collect_system_metrics("/")

        assert metrics.load_average == "0.10, 0.05, 0.00"
        assert metrics.memory_used_percent == 42.5
        assert metrics.disk_used == "37%"
        assert metrics.uptime_seconds == 86400

    def test_each_metric_degrades_independently(self, monkeypatch):
        Memory = namedtuple("Memory", "percent")

        def broken(*args):
            raise OSError("not supported")

        monkeypatch.setattr(system_probe.psutil, "getloadavg", broken)
        monkeypatch.setattr(system_probe.psutil, "virtual_memory", lambda: Memory(10.0))
        monkeypatch.setattr(system_probe.psutil, "disk_usage", broken)
        monkeypatch.setattr(system_probe.psutil, "boot_time", broken)

        metrics = collect_system_metrics("/")

        assert metrics.load_average == "unknown"
        assert metrics.memory_used_percent == 10.0
        assert metrics.disk_used == "unknown"
        assert metrics.uptime_seconds is None
