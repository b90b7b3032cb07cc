"""
Review Queue Domain Models

Pydantic V2 models for the metrics and application review endpoints of the
node API.
"""

from typing import Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, Field

from models.health import UNKNOWN

T = TypeVar("T")


class ServerInstance(BaseModel):
    """Instance attribution attached to API responses."""
    id: str = UNKNOWN
    type: str = UNKNOWN
    availability_zone: str = UNKNOWN
    region: str = UNKNOWN


class ServerInfo(BaseModel):
    """Which instance answered a request, and when."""
    instance: ServerInstance = Field(default_factory=ServerInstance)
    timestamp: str = Field(..., description="ISO 8601 UTC response time")


class MetricsData(BaseModel):
    """Review queue counters."""
    applications_processed: int = Field(..., description="Applications with a recorded decision")
    pending_review: int = Field(..., description="Applications still waiting for a decision")
    approved_today: int = Field(..., description="Approvals recorded since midnight UTC")
    rejected_today: int = Field(..., description="Rejections recorded since midnight UTC")


class Application(BaseModel):
    """An application waiting for (or past) human review."""
    id: str
    type: str
    applicant_name: str
    submission_date: str
    status: Literal["pending", "approved", "rejected"]
    pdf_url: Optional[str] = None


class DecisionRequest(BaseModel):
    """A reviewer's decision on an application."""
    decision: Literal["approve", "reject"]
    comments: Optional[str] = None
    timestamp: str


class ApiResponse(BaseModel, Generic[T]):
    """Envelope used by the /api endpoints."""
    data: T
    server_info: ServerInfo
    timestamp: str


class DecisionResponse(BaseModel):
    """Acknowledgement of a recorded decision."""
    message: str
    server_info: ServerInfo
    timestamp: str


MetricsResponse = ApiResponse[MetricsData]
ApplicationsResponse = ApiResponse[List[Application]]
