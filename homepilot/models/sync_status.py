"""
SyncStatus model - one row per background sync stream.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from homepilot.db.base import Base
from homepilot.models.entity import utc_now


class SyncStream:
    """Names of the sync streams."""
    ENTITIES = "entities"
    HISTORY = "history"
    ENERGY = "energy"

    ALL = (ENTITIES, HISTORY, ENERGY)


class SyncState:
    """Allowed values of SyncStatus.status."""
    IDLE = "idle"
    RUNNING = "running"
    ERROR = "error"
    DISABLED = "disabled"


class SyncStatus(Base):
    """SQLAlchemy ORM model for the 'sync_status' table."""

    __tablename__ = "sync_status"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # sync_type: "entities", "history" or "energy"
    sync_type: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=SyncState.IDLE)

    # last_sync_at: when the most recent run started
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    next_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # details: per-run information such as the number of rows written
    details: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sync_type": self.sync_type,
            "status": self.status,
            "last_sync_at": self.last_sync_at.isoformat() if self.last_sync_at else None,
            "next_sync_at": self.next_sync_at.isoformat() if self.next_sync_at else None,
            "error_message": self.error_message,
            "error_at": self.error_at.isoformat() if self.error_at else None,
            "details": self.details or {},
        }
