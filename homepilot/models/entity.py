"""
Entity models - the local mirror of hub state and its change history.

`entities` holds one row per hub entity, overwritten on every successful
entity sync. `entity_history` holds one row per observed state transition.
Both tables are written only by the State Synchronizer.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Float, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from homepilot.db.base import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EntityRecord(Base):
    """
    SQLAlchemy ORM model for the 'entities' table.

    Example: entity_id="light.living_room", domain="light", state="on".
    """

    __tablename__ = "entities"

    # entity_id: "<domain>.<qualifier>" as reported by the hub
    entity_id: Mapped[str] = mapped_column(String(255), primary_key=True)

    friendly_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # domain: substring of entity_id before the first "."
    domain: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # state: free-form string ("on", "21.5", "unavailable", ...)
    state: Mapped[str] = mapped_column(Text, nullable=False)

    unit_of_measurement: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    device_class: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # attributes: full attribute object from the hub
    attributes: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)

    last_changed: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_updated: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # last_synced: when this row was last written by the entity sync
    last_synced: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    def __repr__(self) -> str:
        return f"<EntityRecord {self.entity_id}={self.state!r}>"


class EntityHistory(Base):
    """
    SQLAlchemy ORM model for the 'entity_history' table.

    A row exists only when the sampled state differed from the previously
    recorded state for the same entity.
    """

    __tablename__ = "entity_history"
    __table_args__ = (
        Index("idx_entity_history_entity_time", "entity_id", "recorded_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    entity_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    state: Mapped[str] = mapped_column(Text, nullable=False)

    # state_numeric: parsed float when the state is a number, for energy maths
    state_numeric: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    attributes: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, index=True
    )

    def __repr__(self) -> str:
        return f"<EntityHistory {self.entity_id}={self.state!r} @ {self.recorded_at}>"
