"""
Sync router - control and inspect the State Synchronizer.

Streams:
- entities: full mirror refresh
- history:  change-based history capture for monitored entities
- energy:   stored energy analysis pattern

Starting a stream runs one sync immediately and then schedules the loop;
the response carries the stream's fresh status either way.
"""

from typing import Awaitable, Callable, Dict, List, NamedTuple, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from homepilot.core.config import settings
from homepilot.deps import get_synchronizer
from homepilot.models.sync_status import SyncStream
from homepilot.schemas.sync import (
    CleanupRequest,
    CleanupResponse,
    MonitorRequest,
    MonitorResponse,
    StartSyncRequest,
    SyncStatusOut,
)
from homepilot.services.sync_service import StateSynchronizer

# ---------------------------------------------------------------------------
# ROUTER SETUP
# ---------------------------------------------------------------------------
router = APIRouter(prefix="/sync", tags=["sync"])


# ---------------------------------------------------------------------------
# HELPER FUNCTIONS
# ---------------------------------------------------------------------------

def check_stream(stream: str) -> str:
    """
    Raises:
        404: If the stream name is not one of SyncStream.ALL
    """
    if stream not in SyncStream.ALL:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown sync stream '{stream}'",
        )
    return stream


class StreamControls(NamedTuple):
    start: Callable[[float], Awaitable[bool]]
    stop: Callable[[], Awaitable[None]]
    run_once: Callable[[], Awaitable[bool]]
    default_interval: float


def stream_controls(synchronizer: StateSynchronizer, stream: str) -> StreamControls:
    if stream == SyncStream.ENTITIES:
        return StreamControls(
            synchronizer.start_entity_sync,
            synchronizer.stop_entity_sync,
            synchronizer.sync_entities,
            settings.ENTITY_SYNC_INTERVAL_MINUTES,
        )
    if stream == SyncStream.HISTORY:
        return StreamControls(
            synchronizer.start_history_tracking,
            synchronizer.stop_history_tracking,
            synchronizer.track_history,
            settings.HISTORY_SYNC_INTERVAL_MINUTES,
        )
    return StreamControls(
        synchronizer.start_energy_analysis,
        synchronizer.stop_energy_analysis,
        synchronizer.analyze_energy,
        settings.ENERGY_ANALYSIS_INTERVAL_MINUTES,
    )


def stream_status(synchronizer: StateSynchronizer, stream: str) -> Dict:
    for entry in synchronizer.get_sync_statuses():
        if entry["sync_type"] == stream:
            return entry
    return {"sync_type": stream}


# ---------------------------------------------------------------------------
# STATUS
# ---------------------------------------------------------------------------

@router.get("/status", response_model=List[SyncStatusOut])
def get_sync_status(synchronizer: StateSynchronizer = Depends(get_synchronizer)):
    """One entry per stream, including streams that have never run."""
    return synchronizer.get_sync_statuses()


# ---------------------------------------------------------------------------
# START / STOP / RUN ONCE
# ---------------------------------------------------------------------------

@router.post("/{stream}/start", response_model=SyncStatusOut)
async def start_stream(
    stream: str,
    payload: Optional[StartSyncRequest] = None,
    synchronizer: StateSynchronizer = Depends(get_synchronizer),
):
    controls = stream_controls(synchronizer, check_stream(stream))
    interval = payload.interval_minutes if payload else None
    await controls.start(interval or controls.default_interval)
    return stream_status(synchronizer, stream)


@router.post("/{stream}/stop", response_model=SyncStatusOut)
async def stop_stream(stream: str, synchronizer: StateSynchronizer = Depends(get_synchronizer)):
    await stream_controls(synchronizer, check_stream(stream)).stop()
    return stream_status(synchronizer, stream)


@router.post("/{stream}/run", response_model=SyncStatusOut)
async def run_stream_once(stream: str, synchronizer: StateSynchronizer = Depends(get_synchronizer)):
    """
    Run one sync now without touching the schedule.

    Waits for a scheduled run of the same stream that is already in flight.
    """
    await stream_controls(synchronizer, check_stream(stream)).run_once()
    return stream_status(synchronizer, stream)


# ---------------------------------------------------------------------------
# HISTORY MONITORING
# ---------------------------------------------------------------------------

@router.post("/history/monitor", response_model=MonitorResponse)
async def add_monitored(
    payload: MonitorRequest,
    synchronizer: StateSynchronizer = Depends(get_synchronizer),
):
    """
    Track one entity, or every sensor the hub reports.

    Raises:
        400: If neither entity_id nor all_sensors is given
    """
    if payload.all_sensors:
        await synchronizer.monitor_all_sensors()
    elif payload.entity_id:
        synchronizer.add_monitored_entity(payload.entity_id)
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide entity_id or set all_sensors",
        )
    return {"monitored_entities": synchronizer.monitored_entities}


@router.delete("/history/monitor/{entity_id}", response_model=MonitorResponse)
def remove_monitored(entity_id: str, synchronizer: StateSynchronizer = Depends(get_synchronizer)):
    synchronizer.remove_monitored_entity(entity_id)
    return {"monitored_entities": synchronizer.monitored_entities}


@router.post("/history/cleanup", response_model=CleanupResponse)
def cleanup_history(
    payload: Optional[CleanupRequest] = None,
    synchronizer: StateSynchronizer = Depends(get_synchronizer),
):
    """Delete history points older than the retention window."""
    days = payload.days_to_keep if payload else settings.HISTORY_RETENTION_DAYS
    deleted = synchronizer.clean_old_history(days)
    return {"deleted": deleted, "days_to_keep": days}
