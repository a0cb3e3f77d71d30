"""
State Synchronizer - background loops that keep the local mirror fresh.

Three independent streams, each with its own cadence and status row:

- entities: poll the hub, overwrite the mirror (default every 5 minutes)
- history:  poll the hub, record a History Point only when a monitored
            entity's state differs from the last one recorded in this
            process (default every minute)
- energy:   summarize recorded power history and store it as the
            `energy_analysis` pattern (default every hour)

Lifecycle:
==========
    start → run once now → loop { sleep(interval) → run }
    stop  → cancel the loop → status "disabled"

Each stream has two locks. The control lock is held for the whole of a
start or stop, so overlapping start/stop calls apply one after the other
and there is never more than one loop per stream. The run lock is held for
each single run, so a scheduled run and a manual run never overlap.

Status per run: "running" → "idle" (with details) or "error" (with the
message). A ConfigurationError ends the stream's loop since retrying cannot
help; every other failure is retried on the next tick. Nothing here raises
to the caller.

Usage:
======
    sync = StateSynchronizer(hub, mirror, history, status_store, energy=energy)
    await sync.start_entity_sync(interval_minutes=5)
    await sync.start_history_tracking(interval_minutes=1)
    await sync.start_energy_analysis(interval_minutes=60)
    ...
    await sync.shutdown()
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from homepilot.core.errors import ConfigurationError, PersistenceError
from homepilot.environments.base import EntitySource
from homepilot.models.sync_status import SyncState, SyncStream
from homepilot.services.energy_insights import EnergyInsightService
from homepilot.services.entity_mirror import EntityMirror, HistoryStore, SyncStatusStore

logger = logging.getLogger("homepilot.services.sync")

SyncWork = Callable[[], Awaitable[Dict[str, Any]]]


class StateSynchronizer:
    """Entity mirroring, change-based history capture and energy analysis."""

    def __init__(
        self,
        hub: EntitySource,
        mirror: EntityMirror,
        history: HistoryStore,
        status_store: SyncStatusStore,
        energy: Optional[EnergyInsightService] = None,
    ):
        self.hub = hub
        self.mirror = mirror
        self.history = history
        self.status_store = status_store
        self.energy = energy

        self._tasks: Dict[str, asyncio.Task] = {}
        self._intervals: Dict[str, float] = {}
        self._control_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._run_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._monitored: Set[str] = set()
        self._last_states: Dict[str, str] = {}

    # -------------------------------------------------------------------------
    # STATUS + RUN HELPERS
    # -------------------------------------------------------------------------

    def _set_status(self, stream: str, status: str, **kwargs) -> None:
        try:
            self.status_store.update_status(stream, status, **kwargs)
        except PersistenceError as e:
            logger.warning(f"Could not record {stream} sync status '{status}': {e}")

    def _next_sync_at(self, stream: str) -> Optional[datetime]:
        interval = self._intervals.get(stream)
        if interval is None:
            return None
        return datetime.now(timezone.utc) + timedelta(minutes=interval)

    async def _run(self, stream: str, work: SyncWork) -> Optional[Exception]:
        """Run one sync and record its status. Returns the error, if any."""
        async with self._run_locks[stream]:
            self._set_status(stream, SyncState.RUNNING)
            try:
                details = await work()
            except Exception as e:
                logger.error(f"{stream} sync failed: {e}")
                retry_at = None if isinstance(e, ConfigurationError) else self._next_sync_at(stream)
                self._set_status(stream, SyncState.ERROR, error_message=str(e), next_sync_at=retry_at)
                return e

            self._set_status(
                stream,
                SyncState.IDLE,
                details=details,
                next_sync_at=self._next_sync_at(stream),
            )
            return None

    async def _loop(self, stream: str, work: SyncWork, interval_minutes: float) -> None:
        while True:
            await asyncio.sleep(interval_minutes * 60)
            error = await self._run(stream, work)
            if isinstance(error, ConfigurationError):
                logger.error(f"Stopping {stream} sync: not configured ({error})")
                return

    async def _cancel(self, stream: str) -> None:
        task = self._tasks.pop(stream, None)
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _start(self, stream: str, work: SyncWork, interval_minutes: float) -> bool:
        """Cancel any running loop, sync once now, then schedule the loop."""
        async with self._control_locks[stream]:
            await self._cancel(stream)
            self._intervals[stream] = interval_minutes

            error = await self._run(stream, work)
            if isinstance(error, ConfigurationError):
                logger.error(f"Not scheduling {stream} sync: {error}")
                self._intervals.pop(stream, None)
                return False

            self._tasks[stream] = asyncio.create_task(
                self._loop(stream, work, interval_minutes), name=f"homepilot-sync-{stream}"
            )
            logger.info(f"{stream} sync started (every {interval_minutes} min)")
            return True

    async def _stop(self, stream: str) -> None:
        async with self._control_locks[stream]:
            await self._cancel(stream)
            self._intervals.pop(stream, None)
            self._set_status(stream, SyncState.DISABLED)
            logger.info(f"{stream} sync stopped")
    # -------------------------------------------------------------------------
    # ENTITY SYNC
    # -------------------------------------------------------------------------

    async def _sync_entities_once(self) -> Dict[str, Any]:
        entities = await self.hub.list_entities()
        count = self.mirror.upsert_entities(entities)
        logger.info(f"Synced {count} entities")
        return {"entities_synced": count}

    async def sync_entities(self) -> bool:
        """Mirror every hub entity once. Returns False on failure, never raises."""
        return await self._run(SyncStream.ENTITIES, self._sync_entities_once) is None

    async def start_entity_sync(self, interval_minutes: float = 5) -> bool:
        return await self._start(SyncStream.ENTITIES, self._sync_entities_once, interval_minutes)

    async def stop_entity_sync(self) -> None:
        await self._stop(SyncStream.ENTITIES)

    # -------------------------------------------------------------------------
    # HISTORY TRACKING
    # -------------------------------------------------------------------------

    def add_monitored_entity(self, entity_id: str) -> None:
        self._monitored.add(entity_id)

    def remove_monitored_entity(self, entity_id: str) -> None:
        """Stop tracking an entity and forget its last-seen state."""
        self._monitored.discard(entity_id)
        self._last_states.pop(entity_id, None)

    @property
    def monitored_entities(self) -> List[str]:
        return sorted(self._monitored)

    async def monitor_all_sensors(self) -> int:
        """Subscribe to every sensor.* entity the hub reports. Returns the count added."""
        entities = await self.hub.list_entities()
        return self._subscribe_sensors(entities)

    def _subscribe_sensors(self, entities) -> int:
        before = len(self._monitored)
        self._monitored.update(e.entity_id for e in entities if e.entity_id.startswith("sensor."))
        added = len(self._monitored) - before
        logger.info(f"Monitoring {len(self._monitored)} entities ({added} new sensors)")
        return added

    async def _track_history_once(self) -> Dict[str, Any]:
        entities = await self.hub.list_entities()
        if not self._monitored:
            self._subscribe_sensors(entities)

        recorded = 0
        for entity in entities:
            if entity.entity_id not in self._monitored:
                continue
            if self._last_states.get(entity.entity_id) == entity.state:
                continue
            self.history.add_entity_history(entity.entity_id, entity.state, entity.attributes)
            self._last_states[entity.entity_id] = entity.state
            recorded += 1

        if recorded:
            logger.info(f"Recorded {recorded} state change(s)")
        return {"recorded": recorded, "monitored": len(self._monitored)}

    async def track_history(self) -> bool:
        """Sample monitored entities once. Returns False on failure, never raises."""
        return await self._run(SyncStream.HISTORY, self._track_history_once) is None

    async def start_history_tracking(self, interval_minutes: float = 1) -> bool:
        return await self._start(SyncStream.HISTORY, self._track_history_once, interval_minutes)

    async def stop_history_tracking(self) -> None:
        await self._stop(SyncStream.HISTORY)

    def clean_old_history(self, days_to_keep: int = 30) -> int:
        deleted = self.history.clean_old_history(days_to_keep)
        logger.info(f"Deleted {deleted} history points older than {days_to_keep} days")
        return deleted

    # -------------------------------------------------------------------------
    # ENERGY ANALYSIS
    # -------------------------------------------------------------------------

    async def _analyze_energy_once(self) -> Dict[str, Any]:
        if self.energy is None:
            raise ConfigurationError("No energy insight service is attached")
        analysis = self.energy.store_analysis()
        return {
            "trend": analysis["trend"],
            "always_on_devices": len(analysis["always_on_devices"]),
        }

    async def analyze_energy(self) -> bool:
        """Store a fresh energy analysis once. Returns False on failure, never raises."""
        return await self._run(SyncStream.ENERGY, self._analyze_energy_once) is None

    async def start_energy_analysis(self, interval_minutes: float = 60) -> bool:
        return await self._start(SyncStream.ENERGY, self._analyze_energy_once, interval_minutes)

    async def stop_energy_analysis(self) -> None:
        await self._stop(SyncStream.ENERGY)

    # -------------------------------------------------------------------------
    # INTROSPECTION
    # -------------------------------------------------------------------------

    def is_running(self, stream: str) -> bool:
        task = self._tasks.get(stream)
        return task is not None and not task.done()

    def get_sync_statuses(self) -> List[Dict[str, Any]]:
        """One entry per stream, including streams that have never run."""
        rows = {row.sync_type: row.to_dict() for row in self.status_store.get_all()}
        statuses = []
        for stream in SyncStream.ALL:
            entry = rows.get(stream) or {"sync_type": stream, "status": SyncState.IDLE}
            entry["running"] = self.is_running(stream)
            entry["interval_minutes"] = self._intervals.get(stream)
            statuses.append(entry)
        return statuses

    def get_stats(self) -> Dict[str, Any]:
        stats = self.mirror.get_stats()
        stats["monitored_entities"] = len(self._monitored)
        return stats

    async def shutdown(self) -> None:
        """Cancel every loop without touching status rows."""
        for stream in SyncStream.ALL:
            async with self._control_locks[stream]:
                await self._cancel(stream)
