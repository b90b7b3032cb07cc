"""
Health Reporter Service

Background service that periodically samples node health and publishes it
as a single JSON snapshot file. Each run fully replaces the previous
snapshot; a failed sub-check degrades its own fields to "unknown"/null and
never blocks the snapshot.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

import orjson

from config import settings
from models.health import (
    ContentSyncStatus,
    EnvironmentInfo,
    HealthSnapshot,
    HealthStatus,
    InstanceIdentity,
    SystemMetrics,
    UNKNOWN,
    WebServerStatus,
)
from services.content_sync import read_sync_status
from services.instance_metadata import InstanceMetadataClient
from services.system_probe import check_web_server, collect_system_metrics, probe_liveness
from utils.datetime_utils import format_iso_utc
from utils.file_utils import atomic_write
from utils.logging import bind_instance_context, get_logger, log_system_state_change

logger = get_logger("health-reporter")


def derive_node_status(web_server: WebServerStatus) -> HealthStatus:
    """
    Overall node status follows the web server check only.

    Sync freshness is published separately and does not affect this value.
    """
    if web_server.status == UNKNOWN:
        return HealthStatus.UNKNOWN
    if web_server.status != "active":
        return HealthStatus.UNHEALTHY
    if not web_server.responding:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


def render_snapshot(snapshot: HealthSnapshot) -> bytes:
    """Serialize a snapshot to the JSON document served at /health-detailed."""
    return orjson.dumps(snapshot.model_dump(mode="json"), option=orjson.OPT_INDENT_2)


class HealthReporterService:
    """Samples node health on a fixed interval and writes the snapshot file."""

    def __init__(
        self,
        snapshot_path: Optional[str] = None,
        sync_marker_path: Optional[str] = None,
        interval_seconds: Optional[float] = None,
        metadata_client: Optional[InstanceMetadataClient] = None,
        web_server_check: Optional[Callable[[], WebServerStatus]] = None,
        liveness_probe: Optional[Callable[[], Awaitable[bool]]] = None,
        metrics_collector: Optional[Callable[[], SystemMetrics]] = None,
    ):
        self.snapshot_path = snapshot_path or settings.HEALTH_SNAPSHOT_PATH
        self.sync_marker_path = sync_marker_path or settings.SYNC_MARKER_PATH
        self.interval_seconds = interval_seconds or settings.REPORTER_INTERVAL_SECONDS
        self.metadata_client = metadata_client or InstanceMetadataClient()
        self._web_server_check = web_server_check or (
            lambda: check_web_server(settings.WEB_SERVER_UNIT, settings.WEB_SERVER_BINARY)
        )
        self._liveness_probe = liveness_probe or (
            lambda: probe_liveness(settings.WEB_SERVER_PROBE_URL, settings.WEB_SERVER_PROBE_TIMEOUT)
        )
        self._metrics_collector = metrics_collector or (
            lambda: collect_system_metrics(settings.DISK_PATH)
        )

        self.is_running = False
        self.reporter_task: Optional[asyncio.Task] = None
        self.latest_snapshot: Optional[HealthSnapshot] = None

    @property
    def identity(self) -> InstanceIdentity:
        """Identity from the most recent snapshot ("unknown" before the first one)."""
        if self.latest_snapshot is None:
            return InstanceIdentity()
        return self.latest_snapshot.instance

    async def start(self):
        """Start the background reporting loop."""
        if self.is_running:
            logger.warning("Health reporter already running")
            return

        self.is_running = True
        self.reporter_task = asyncio.create_task(self._report_loop())
        logger.info("Health reporter started", interval_seconds=self.interval_seconds)

    async def stop(self):
        """Stop the background reporting loop."""
        self.is_running = False

        if self.reporter_task:
            self.reporter_task.cancel()
            try:
                await self.reporter_task
            except asyncio.CancelledError:
                pass
            self.reporter_task = None

        logger.info("Health reporter stopped")

    async def _report_loop(self):
        """Continuous reporting loop; a failed cycle is logged and retried next interval."""
        while self.is_running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in health reporting cycle: {e}", exc_info=True)
            await asyncio.sleep(self.interval_seconds)

    async def run_once(self) -> HealthSnapshot:
        """Sample, render and write one snapshot."""
        start_time = time.time()
        snapshot = await self.sample()

        # Identity is published even when the snapshot file cannot be written
        previous = self.latest_snapshot
        self.latest_snapshot = snapshot
        if previous is None or previous.instance.id != snapshot.instance.id:
            bind_instance_context(snapshot.instance.id, snapshot.instance.availability_zone)
        if previous is None or previous.status != snapshot.status:
            log_system_state_change(
                "node",
                snapshot.status,
                {"previous_state": previous.status if previous else None},
                logger=logger,
            )

        self.write(snapshot)
        logger.debug(
            "Health snapshot written",
            path=self.snapshot_path,
            status=snapshot.status,
            duration_ms=int((time.time() - start_time) * 1000),
        )
        return snapshot

    async def sample(self) -> HealthSnapshot:
        """Gather identity, service status and system metrics into a snapshot."""
        identity = await self._sample_identity()
        web_server = await self._sample_web_server()
        content_sync = self._sample_content_sync()
        system = await self._sample_system()

        return HealthSnapshot(
            status=derive_node_status(web_server).value,
            timestamp=format_iso_utc(),
            instance=identity,
            services={"web_server": web_server, "content_sync": content_sync},
            system=system,
            environment=EnvironmentInfo(
                environment=settings.ENVIRONMENT,
                project=settings.PROJECT_NAME,
                s3_bucket=settings.S3_BUCKET,
            ),
        )

    def render(self, snapshot: HealthSnapshot) -> bytes:
        return render_snapshot(snapshot)

    def write(self, snapshot: HealthSnapshot) -> None:
        """Atomically replace the snapshot file."""
        atomic_write(self.snapshot_path, self.render(snapshot))

    async def _sample_identity(self) -> InstanceIdentity:
        try:
            return await self.metadata_client.get_identity()
        except Exception as e:
            logger.warning(f"Instance identity unavailable: {e}")
            return InstanceIdentity.filled(UNKNOWN)

    async def _sample_web_server(self) -> WebServerStatus:
        try:
            web_server = await asyncio.to_thread(self._web_server_check)
        except Exception as e:
            logger.warning(f"Web server check failed: {e}")
            return WebServerStatus(status=UNKNOWN, responding=False)

        if web_server.status == "active":
            try:
                web_server.responding = bool(await self._liveness_probe())
            except Exception as e:
                logger.warning(f"Web server liveness probe failed: {e}")
                web_server.responding = False
        return web_server

    def _sample_content_sync(self) -> ContentSyncStatus:
        try:
            return read_sync_status(self.sync_marker_path)
        except Exception as e:
            logger.warning(f"Content sync check failed: {e}")
            return ContentSyncStatus()

    async def _sample_system(self) -> SystemMetrics:
        try:
            return await asyncio.to_thread(self._metrics_collector)
        except Exception as e:
            logger.warning(f"System metrics unavailable: {e}")
            return SystemMetrics()


# Global health reporter instance
health_reporter = HealthReporterService()
