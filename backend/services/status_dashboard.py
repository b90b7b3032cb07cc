"""
Status Dashboard Service

Polls a node's health and metrics endpoints and keeps an immutable view
state for rendering. Every fetch path ends in a concrete state: a parsed
snapshot, a synthesized fallback snapshot, or an explicit "error" snapshot.

Timer ticks and manual refreshes may overlap. Fetches are idempotent reads,
so overlapping results simply resolve last-write-wins.
"""

import asyncio
import colorsys
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

import httpx

from config import settings
from models.health import ERROR, HealthSnapshot, HealthStatus, InstanceIdentity, UNKNOWN
from models.review import ServerInfo
from utils.datetime_utils import format_iso_utc, utc_now
from utils.logging import get_logger

logger = get_logger("status-dashboard")

FRESH_THRESHOLD_SECONDS = 300
STALE_THRESHOLD_SECONDS = 600


class StatusColor(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"
    GRAY = "gray"


class FreshnessTier(str, Enum):
    FRESH = "fresh"
    WARNING = "warning"
    STALE = "stale"
    UNKNOWN = "unknown"


TIER_COLORS = {
    FreshnessTier.FRESH: StatusColor.GREEN,
    FreshnessTier.WARNING: StatusColor.YELLOW,
    FreshnessTier.STALE: StatusColor.RED,
    FreshnessTier.UNKNOWN: StatusColor.GRAY,
}

STATUS_COLORS = {
    HealthStatus.HEALTHY.value: StatusColor.GREEN,
    HealthStatus.DEGRADED.value: StatusColor.YELLOW,
    HealthStatus.UNHEALTHY.value: StatusColor.RED,
}


@dataclass(frozen=True)
class Freshness:
    tier: FreshnessTier
    phrase: str

    @property
    def color(self) -> StatusColor:
        return TIER_COLORS[self.tier]


def format_elapsed(seconds: Optional[int]) -> str:
    """Human phrase for an elapsed time, e.g. "45 seconds ago"."""
    if seconds is None:
        return "Unknown"
    if seconds <= 0:
        return "just now"
    if seconds < 60:
        return f"{seconds} seconds ago"
    if seconds < 120:
        return "1 minute ago"
    if seconds < 3600:
        return f"{seconds // 60} minutes ago"
    if seconds < 7200:
        return "1 hour ago"
    return f"{seconds // 3600} hours ago"


def classify_freshness(seconds: Optional[int]) -> Freshness:
    """
    Map seconds since the last sync to a freshness tier.

    A missing value is "unknown" (gray), which is distinct from stale.
    Zero or negative ages (clock skew) count as fresh.
    """
    if seconds is None:
        tier = FreshnessTier.UNKNOWN
    elif seconds < FRESH_THRESHOLD_SECONDS:
        tier = FreshnessTier.FRESH
    elif seconds < STALE_THRESHOLD_SECONDS:
        tier = FreshnessTier.WARNING
    else:
        tier = FreshnessTier.STALE
    return Freshness(tier=tier, phrase=format_elapsed(seconds))


def classify_status(status: Optional[str]) -> StatusColor:
    """Case-insensitive status colour; anything unrecognised is gray."""
    return STATUS_COLORS.get((status or "").lower(), StatusColor.GRAY)


def instance_hue(instance_id: str) -> int:
    """Stable hue (0-359) for an instance ID, using a 32-bit rolling string hash."""
    value = 0
    for char in instance_id:
        value = ((value << 5) - value + ord(char)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return abs(value) % 360


def instance_color(instance_id: str) -> str:
    """Hex colour for hsl(hue, 70%, 50%), used to tint the serving-instance panel."""
    r, g, b = colorsys.hls_to_rgb(instance_hue(instance_id) / 360.0, 0.5, 0.7)
    return "#{:02x}{:02x}{:02x}".format(round(r * 255), round(g * 255), round(b * 255))


def fallback_snapshot(body: str) -> HealthSnapshot:
    """Minimal snapshot built from the plaintext liveness check."""
    status = HealthStatus.HEALTHY.value if "healthy" in body.lower() else UNKNOWN
    return HealthSnapshot(
        status=status,
        timestamp=format_iso_utc(),
        instance=InstanceIdentity.filled(UNKNOWN),
    )


def error_snapshot() -> HealthSnapshot:
    """Snapshot shown when the node cannot be reached at all."""
    return HealthSnapshot(
        status=ERROR,
        timestamp=format_iso_utc(),
        instance=InstanceIdentity.filled(ERROR),
    )


@dataclass(frozen=True)
class ServedBy:
    """Which backend instance served the root document."""
    instance_id: str
    availability_zone: str
    region: str
    server: str
    served_at: str

    @classmethod
    def filled(cls, value: str) -> "ServedBy":
        return cls(value, value, value, value, format_iso_utc())


@dataclass(frozen=True)
class DashboardViewState:
    """Everything the dashboard renders. Replaced wholesale, never mutated."""
    health: Optional[HealthSnapshot] = None
    server_info: Optional[ServerInfo] = None
    served_by: Optional[ServedBy] = None
    refresh_count: int = 0
    loading: bool = True
    last_refresh: datetime = field(default_factory=utc_now)


class StatusDashboard:
    """Polls one node and keeps the latest view state."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_change: Optional[Callable[[DashboardViewState], None]] = None,
    ):
        self.base_url = (base_url or settings.DASHBOARD_BASE_URL).rstrip("/")
        self.poll_interval = poll_interval or settings.DASHBOARD_POLL_INTERVAL
        self.timeout = timeout or settings.DASHBOARD_HTTP_TIMEOUT
        self._transport = transport
        self._on_change = on_change
        self._state = DashboardViewState()

        self.is_running = False
        self.poll_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> DashboardViewState:
        return self._state

    def _set_state(self, **changes) -> DashboardViewState:
        self._state = replace(self._state, **changes)
        if self._on_change is not None:
            self._on_change(self._state)
        return self._state

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    async def fetch_health(self) -> HealthSnapshot:
        """Fetch the detailed snapshot, falling back to the plaintext check."""
        self._set_state(loading=True)
        snapshot = await self._load_health()
        self._set_state(health=snapshot, loading=False)
        return snapshot

    async def _load_health(self) -> HealthSnapshot:
        try:
            async with self._client() as client:
                response = await client.get("/health-detailed")
                if response.is_success:
                    try:
                        return HealthSnapshot.model_validate(response.json())
                    except ValueError as e:
                        logger.warning("Undecodable health snapshot, falling back", error=str(e))
                else:
                    logger.warning("Detailed health check failed, falling back", status_code=response.status_code)

                simple = await client.get("/health")
                if simple.is_success:
                    return fallback_snapshot(simple.text)

                logger.warning("Simple health check failed", status_code=simple.status_code)
                return error_snapshot()

        except httpx.HTTPError as e:
            logger.error("Failed to fetch health data", error=str(e))
            return error_snapshot()

    async def fetch_metrics(self) -> Optional[ServerInfo]:
        """Fetch server attribution from the metrics endpoint. Failures are ignored."""
        try:
            async with self._client() as client:
                response = await client.get("/api/metrics")
                response.raise_for_status()
                server_info = ServerInfo.model_validate(response.json()["server_info"])
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.warning("Failed to fetch metrics", error=str(e))
            return None

        self._set_state(server_info=server_info)
        return server_info

    async def capture_served_by(self) -> ServedBy:
        """Read the instance headers attached to the root document."""
        try:
            async with self._client() as client:
                response = await client.head("/")
            served_by = ServedBy(
                instance_id=response.headers.get("X-Instance-ID", UNKNOWN),
                availability_zone=response.headers.get("X-Availability-Zone", UNKNOWN),
                region=response.headers.get("X-Region", UNKNOWN),
                server=response.headers.get("Server", UNKNOWN),
                served_at=format_iso_utc(),
            )
        except httpx.HTTPError as e:
            logger.error("Failed to capture serving instance", error=str(e))
            served_by = ServedBy.filled(ERROR)

        self._set_state(served_by=served_by)
        return served_by

    async def refresh(self) -> DashboardViewState:
        """Manual refresh: re-fetch health and metrics now, independent of the timer."""
        self._set_state(
            refresh_count=self._state.refresh_count + 1,
            last_refresh=utc_now(),
            loading=True,
        )
        await asyncio.gather(self.fetch_health(), self.fetch_metrics())
        return self._state

    async def start(self):
        """Fetch everything once, then poll health every interval."""
        if self.is_running:
            logger.warning("Dashboard polling already running")
            return

        self.is_running = True
        await asyncio.gather(self.capture_served_by(), self.fetch_health(), self.fetch_metrics())
        self.poll_task = asyncio.create_task(self._poll_loop())
        logger.info("Dashboard polling started", base_url=self.base_url, interval=self.poll_interval)

    async def stop(self):
        self.is_running = False

        if self.poll_task:
            self.poll_task.cancel()
            try:
                await self.poll_task
            except asyncio.CancelledError:
                pass
            self.poll_task = None

        logger.info("Dashboard polling stopped")

    async def _poll_loop(self):
        while self.is_running:
            await asyncio.sleep(self.poll_interval)
            await self.fetch_health()
