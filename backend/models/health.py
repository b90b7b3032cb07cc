"""
Node Health Domain Models

Pydantic V2 models for the health snapshot published by each serving node
and consumed by the status dashboard.
"""

from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, field_validator

UNKNOWN = "unknown"
ERROR = "error"


class HealthStatus(str, Enum):
    """Overall node status values written by the reporter."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


class InstanceIdentity(BaseModel):
    """Identity of the instance that produced a snapshot."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(UNKNOWN, description="Instance ID")
    type: str = Field(UNKNOWN, description="Instance type")
    availability_zone: str = Field(UNKNOWN, description="Availability zone")
    region: str = Field(UNKNOWN, description="Region")
    private_ip: str = Field(UNKNOWN, description="Private IPv4 address")

    @classmethod
    def filled(cls, value: str) -> "InstanceIdentity":
        """Identity with every field set to the same placeholder value."""
        return cls(id=value, type=value, availability_zone=value, region=value, private_ip=value)


class WebServerStatus(BaseModel):
    """Status of the web server process that serves the static frontend."""
    model_config = ConfigDict(extra="ignore")

    kind: Literal["web_server"] = "web_server"
    status: str = Field(..., description="systemd state (active or inactive)")
    responding: bool = Field(False, description="Whether the local liveness probe answered")
    version: Optional[str] = Field(None, description="Web server version")
    pid: Optional[str] = Field(None, description="Main process ID")
    uptime_seconds: Optional[int] = Field(None, description="Seconds since the main process started")


class ContentSyncStatus(BaseModel):
    """Freshness of the content pulled from remote storage."""
    model_config = ConfigDict(extra="ignore")

    kind: Literal["content_sync"] = "content_sync"
    status: str = Field(UNKNOWN, description="active when a valid sync marker exists, else unknown")
    responding: bool = Field(False, description="Whether a valid sync marker was found")
    last_sync: str = Field(UNKNOWN, description="Raw timestamp from the sync marker")
    seconds_since_last_sync: Optional[int] = Field(None, description="Age of the last sync in seconds")


class GenericServiceStatus(BaseModel):
    """Any other service record (e.g. "lambda"); unknown fields are kept as-is."""
    model_config = ConfigDict(extra="allow")

    kind: Optional[str] = None
    status: str = UNKNOWN
    responding: bool = False


SERVICE_KINDS = ("web_server", "content_sync")
GENERIC_KIND = "generic"

# Service names written by older reporters, which did not tag records with `kind`
LEGACY_SERVICE_KINDS = {"openresty": "web_server", "s3_sync": "content_sync"}


def service_kind(value: Any) -> str:
    """Union tag for a service record; untagged or unfamiliar kinds are generic."""
    kind = value.get("kind") if isinstance(value, dict) else getattr(value, "kind", None)
    return kind if kind in SERVICE_KINDS else GENERIC_KIND


ServiceStatus = Annotated[
    Union[
        Annotated[WebServerStatus, Tag("web_server")],
        Annotated[ContentSyncStatus, Tag("content_sync")],
        Annotated[GenericServiceStatus, Tag(GENERIC_KIND)],
    ],
    Discriminator(service_kind),
]


class SystemMetrics(BaseModel):
    """Host level metrics sampled alongside the service checks."""
    model_config = ConfigDict(extra="ignore")

    load_average: str = Field(UNKNOWN, description="1, 5 and 15 minute load averages")
    memory_used_percent: Optional[float] = Field(None, description="Used memory percentage")
    disk_used: str = Field(UNKNOWN, description="Root filesystem usage, e.g. '42%'")
    uptime_seconds: Optional[int] = Field(None, description="Seconds since boot")


class EnvironmentInfo(BaseModel):
    """Deployment labels for the node."""
    model_config = ConfigDict(extra="ignore")

    environment: str = "dev"
    project: str = "hitl"
    s3_bucket: str = UNKNOWN


class HealthSnapshot(BaseModel):
    """The single JSON document describing a node's current health."""
    model_config = ConfigDict(extra="ignore")

    status: str = Field(..., description="healthy, degraded, unhealthy, unknown (or error when synthesized)")
    timestamp: str = Field(..., description="ISO 8601 UTC time the snapshot was produced")
    instance: InstanceIdentity = Field(default_factory=InstanceIdentity)
    services: Dict[str, ServiceStatus] = Field(default_factory=dict)
    system: Optional[SystemMetrics] = None
    environment: Optional[EnvironmentInfo] = None

    @field_validator("services", mode="before")
    @classmethod
    def tag_legacy_services(cls, value):
        if not isinstance(value, dict):
            return value
        tagged = {}
        for name, service in value.items():
            if isinstance(service, dict) and "kind" not in service and name in LEGACY_SERVICE_KINDS:
                service = {**service, "kind": LEGACY_SERVICE_KINDS[name]}
            tagged[name] = service
        return tagged

    @property
    def other_services(self) -> Dict[str, GenericServiceStatus]:
        """Service records without a dedicated model, by name."""
        return {name: s for name, s in self.services.items() if isinstance(s, GenericServiceStatus)}

    @property
    def web_server(self) -> Optional[WebServerStatus]:
        return self._service_of_kind(WebServerStatus)

    @property
    def content_sync(self) -> Optional[ContentSyncStatus]:
        return self._service_of_kind(ContentSyncStatus)

    def _service_of_kind(self, model):
        for service in self.services.values():
            if isinstance(service, model):
                return service
        return None
