"""
Entity mirror, history store and sync-status store.

These are the durable shapes the State Synchronizer writes and the
Interpreter, energy insights and HTTP layer read:

- EntityMirror: the local `entities` table (also an EntitySource, so the
  Interpreter can build context without calling the hub)
- HistoryStore: the append-only `entity_history` table
- SyncStatusStore: one `sync_status` row per stream

Each operation opens its own short-lived session from the injected
session factory. SQLAlchemy failures surface as PersistenceError.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from homepilot.core.errors import PersistenceError
from homepilot.environments.base import EntitySnapshot, EntitySource
from homepilot.models.entity import EntityHistory, EntityRecord
from homepilot.models.sync_status import SyncState, SyncStatus

logger = logging.getLogger("homepilot.services.entity_mirror")

SessionFactory = Callable[[], Session]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_numeric(state: str) -> Optional[float]:
    """Return the state as a float when it is a finite number."""
    try:
        value = float(state)
    except (TypeError, ValueError):
        return None
    if value != value or value in (float("inf"), float("-inf")):
        return None
    return value


class EntityMirror(EntitySource):
    """Local copy of hub entity state."""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    @staticmethod
    def to_record_fields(entity: EntitySnapshot, synced_at: datetime) -> Dict[str, Any]:
        """Map a hub snapshot onto the mirror's row shape."""
        return {
            "entity_id": entity.entity_id,
            "friendly_name": entity.friendly_name or entity.entity_id,
            "domain": entity.domain,
            "state": entity.state,
            "unit_of_measurement": entity.unit_of_measurement,
            "device_class": entity.device_class,
            "attributes": entity.attributes or {},
            "last_changed": entity.last_changed,
            "last_updated": entity.last_updated or synced_at,
            "last_synced": synced_at,
        }

    def upsert_entities(self, entities: List[EntitySnapshot]) -> int:
        """Insert or overwrite one row per entity. Returns the row count."""
        now = _utc_now()
        try:
            with self._session_factory() as session:
                for entity in entities:
                    session.merge(EntityRecord(**self.to_record_fields(entity, now)))
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error upserting entities: {e}")
            raise PersistenceError(f"Failed to upsert entities: {e}") from e
        return len(entities)

    def get_entity(self, entity_id: str) -> Optional[EntityRecord]:
        try:
            with self._session_factory() as session:
                return session.get(EntityRecord, entity_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to fetch entity {entity_id}: {e}") from e

    def get_entities(self, domain: Optional[str] = None) -> List[EntityRecord]:
        stmt = select(EntityRecord)
        if domain:
            stmt = stmt.where(EntityRecord.domain == domain)
        stmt = stmt.order_by(EntityRecord.friendly_name)
        try:
            with self._session_factory() as session:
                return list(session.scalars(stmt))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to fetch entities: {e}") from e

    def search_entities(self, term: str, limit: int = 20) -> List[EntityRecord]:
        """Case-insensitive substring search on entity_id and friendly_name."""
        pattern = f"%{term}%"
        stmt = (
            select(EntityRecord)
            .where(or_(EntityRecord.entity_id.ilike(pattern), EntityRecord.friendly_name.ilike(pattern)))
            .order_by(EntityRecord.friendly_name)
            .limit(limit)
        )
        try:
            with self._session_factory() as session:
                return list(session.scalars(stmt))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to search entities: {e}") from e

    async def list_entities(self) -> List[EntitySnapshot]:
        return [
            EntitySnapshot(
                entity_id=record.entity_id,
                state=record.state,
                friendly_name=record.friendly_name,
                attributes=dict(record.attributes or {}),
                last_changed=record.last_changed,
                last_updated=record.last_updated,
            )
            for record in self.get_entities()
        ]

    def get_stats(self) -> Dict[str, Any]:
        """Total mirrored entities, count per domain and the latest sync time."""
        entities = self.get_entities()
        by_domain = Counter(e.domain for e in entities)
        last_sync = max((e.last_synced for e in entities if e.last_synced), default=None)
        return {
            "total": len(entities),
            "by_domain": dict(by_domain),
            "last_sync": last_sync.isoformat() if last_sync else None,
        }


class HistoryStore:
    """Append-only store of observed state transitions."""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    def add_entity_history(
        self,
        entity_id: str,
        state: str,
        attributes: Optional[Dict[str, Any]] = None,
        recorded_at: Optional[datetime] = None,
    ) -> EntityHistory:
        point = EntityHistory(
            entity_id=entity_id,
            state=state,
            state_numeric=parse_numeric(state),
            attributes=attributes or {},
            recorded_at=recorded_at or _utc_now(),
        )
        try:
            with self._session_factory() as session:
                session.add(point)
                session.commit()
                session.refresh(point)
                session.expunge(point)
        except SQLAlchemyError as e:
            logger.error(f"Error adding entity history for {entity_id}: {e}")
            raise PersistenceError(f"Failed to record history for {entity_id}: {e}") from e
        return point

    def get_entity_history(
        self,
        entity_id: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        limit: int = 1000,
        entity_ids: Optional[List[str]] = None,
    ) -> List[EntityHistory]:
        """History points, newest first."""
        stmt = select(EntityHistory)
        if entity_id:
            stmt = stmt.where(EntityHistory.entity_id == entity_id)
        if entity_ids is not None:
            stmt = stmt.where(EntityHistory.entity_id.in_(entity_ids))
        if start_time:
            stmt = stmt.where(EntityHistory.recorded_at >= start_time)
        if end_time:
            stmt = stmt.where(EntityHistory.recorded_at <= end_time)
        stmt = stmt.order_by(EntityHistory.recorded_at.desc()).limit(limit)
        try:
            with self._session_factory() as session:
                return list(session.scalars(stmt))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to fetch history: {e}") from e

    def clean_old_history(self, days_to_keep: int = 30) -> int:
        """Delete points older than the retention window. Returns rows deleted."""
        cutoff = _utc_now() - timedelta(days=days_to_keep)
        try:
            with self._session_factory() as session:
                result = session.execute(
                    delete(EntityHistory).where(EntityHistory.recorded_at < cutoff)
                )
                session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Error cleaning old history: {e}")
            raise PersistenceError(f"Failed to clean history: {e}") from e


class SyncStatusStore:
    """Per-stream status rows. Exactly one writer per stream at a time."""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    def update_status(
        self,
        sync_type: str,
        status: str,
        error_message: Optional[str] = None,
        next_sync_at: Optional[datetime] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        now = _utc_now()
        try:
            with self._session_factory() as session:
                row = session.scalar(select(SyncStatus).where(SyncStatus.sync_type == sync_type))
                if row is None:
                    row = SyncStatus(sync_type=sync_type)
                    session.add(row)

                row.status = status
                row.updated_at = now
                if status == SyncState.RUNNING:
                    row.last_sync_at = now
                if status == SyncState.ERROR:
                    row.error_message = error_message
                    row.error_at = now
                elif status == SyncState.IDLE:
                    row.error_message = None
                if status in (SyncState.IDLE, SyncState.ERROR, SyncState.DISABLED):
                    # None means no run is scheduled
                    row.next_sync_at = next_sync_at
                if details is not None:
                    row.details = details

                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error updating sync status for {sync_type}: {e}")
            raise PersistenceError(f"Failed to update sync status: {e}") from e

    def get_status(self, sync_type: str) -> Optional[SyncStatus]:
        try:
            with self._session_factory() as session:
                return session.scalar(select(SyncStatus).where(SyncStatus.sync_type == sync_type))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to fetch sync status: {e}") from e

    def get_all(self) -> List[SyncStatus]:
        try:
            with self._session_factory() as session:
                return list(session.scalars(select(SyncStatus).order_by(SyncStatus.sync_type)))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to fetch sync statuses: {e}") from e
