"""
Sync schemas - stream control, status and history maintenance.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class SyncStatusOut(BaseModel):
    """
    Status of one sync stream.

    Example response:
    {
        "sync_type": "entities",
        "status": "idle",
        "last_sync_at": "2025-12-02T10:30:00+00:00",
        "next_sync_at": "2025-12-02T10:35:00+00:00",
        "error_message": null,
        "details": {"entities_synced": 184},
        "running": true,
        "interval_minutes": 5.0
    }
    """
    sync_type: str
    status: str
    last_sync_at: Optional[str] = None
    next_sync_at: Optional[str] = None
    error_message: Optional[str] = None
    error_at: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    running: bool = False
    interval_minutes: Optional[float] = None


class StartSyncRequest(BaseModel):
    """Optional cadence override when starting a stream."""
    interval_minutes: Optional[float] = Field(default=None, gt=0, description="Minutes between runs")


class MonitorRequest(BaseModel):
    """
    Subscribe history tracking to one entity, or to every sensor.

    Example request body:
    {
        "entity_id": "sensor.house_power"
    }
    """
    entity_id: Optional[str] = Field(default=None, min_length=3, description="Entity to track")
    all_sensors: bool = Field(default=False, description="Track every sensor.* entity")


class MonitorResponse(BaseModel):
    monitored_entities: list


class CleanupRequest(BaseModel):
    days_to_keep: int = Field(default=30, ge=1, description="Retention window in days")


class CleanupResponse(BaseModel):
    deleted: int
    days_to_keep: int
