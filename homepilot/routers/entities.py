"""
Entities router - read-only view of the local entity mirror.

Everything here reads the database; nothing calls the hub.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from homepilot.deps import get_history, get_mirror, get_synchronizer
from homepilot.models.entity import EntityRecord
from homepilot.schemas.entity import EntityOut, EntityStatsOut, HistoryPointOut
from homepilot.services.entity_mirror import EntityMirror, HistoryStore
from homepilot.services.sync_service import StateSynchronizer

# ---------------------------------------------------------------------------
# ROUTER SETUP
# ---------------------------------------------------------------------------
router = APIRouter(prefix="/entities", tags=["entities"])


def get_entity_or_404(mirror: EntityMirror, entity_id: str) -> EntityRecord:
    """
    Raises:
        404: If the entity has never been mirrored
    """
    entity = mirror.get_entity(entity_id)
    if not entity:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Entity not found"
        )
    return entity


@router.get("", response_model=List[EntityOut])
def list_entities(
    domain: Optional[str] = None,
    mirror: EntityMirror = Depends(get_mirror),
):
    """All mirrored entities, optionally filtered by domain."""
    return mirror.get_entities(domain=domain)


@router.get("/search", response_model=List[EntityOut])
def search_entities(
    q: str = Query(..., min_length=1, description="Matches entity_id or friendly_name"),
    limit: int = Query(20, ge=1, le=200),
    mirror: EntityMirror = Depends(get_mirror),
):
    return mirror.search_entities(q, limit=limit)


@router.get("/stats", response_model=EntityStatsOut)
def entity_stats(synchronizer: StateSynchronizer = Depends(get_synchronizer)):
    """Counts by domain, last sync time and the number of monitored entities."""
    return synchronizer.get_stats()


@router.get("/{entity_id}", response_model=EntityOut)
def get_entity(entity_id: str, mirror: EntityMirror = Depends(get_mirror)):
    return get_entity_or_404(mirror, entity_id)


@router.get("/{entity_id}/history", response_model=List[HistoryPointOut])
def get_entity_history(
    entity_id: str,
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    limit: int = Query(1000, ge=1, le=10000),
    history: HistoryStore = Depends(get_history),
):
    """Recorded state changes for one entity, newest first."""
    return history.get_entity_history(
        entity_id=entity_id,
        start_time=start_time,
        end_time=end_time,
        limit=limit,
    )
