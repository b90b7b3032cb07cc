"""
HITL Node Models Package

Pydantic models for health snapshots and the review queue API.
"""

from .health import (
    ContentSyncStatus,
    EnvironmentInfo,
    GenericServiceStatus,
    HealthSnapshot,
    HealthStatus,
    InstanceIdentity,
    SystemMetrics,
    WebServerStatus,
)

__all__ = [
    'ContentSyncStatus',
    'EnvironmentInfo',
    'GenericServiceStatus',
    'HealthSnapshot',
    'HealthStatus',
    'InstanceIdentity',
    'SystemMetrics',
    'WebServerStatus',
]
