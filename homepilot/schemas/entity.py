"""
Entity schemas - mirrored entities and their history.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class EntityOut(BaseModel):
    """
    Schema for a mirrored entity.

    Example response:
    {
        "entity_id": "sensor.house_power",
        "friendly_name": "House Power",
        "domain": "sensor",
        "state": "1250",
        "unit_of_measurement": "W",
        "device_class": "power",
        "attributes": {"friendly_name": "House Power"},
        "last_synced": "2025-12-02T10:30:00Z"
    }
    """
    entity_id: str
    friendly_name: str
    domain: str
    state: str
    unit_of_measurement: Optional[str] = None
    device_class: Optional[str] = None
    attributes: Dict[str, Any] = {}
    last_changed: Optional[datetime] = None
    last_updated: Optional[datetime] = None
    last_synced: Optional[datetime] = None

    class Config:
        # Allow creating from SQLAlchemy ORM objects
        from_attributes = True


class HistoryPointOut(BaseModel):
    """One recorded state transition."""
    id: uuid.UUID
    entity_id: str
    state: str
    state_numeric: Optional[float] = None
    attributes: Dict[str, Any] = {}
    recorded_at: datetime

    class Config:
        from_attributes = True


class EntityStatsOut(BaseModel):
    """Mirror statistics."""
    total: int
    by_domain: Dict[str, int]
    last_sync: Optional[str] = None
    monitored_entities: int = 0
