"""
Energy router - consumption summary and saving suggestions.

Insights and suggestions are computed on demand from the recorded history of power
sensors. Suggestion types rated down are filtered out.
The energy sync stream stores a periodic analysis as a learned pattern.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from homepilot.deps import get_energy
from homepilot.schemas.energy import EnergyInsightsOut, EnergySuggestionOut
from homepilot.schemas.pattern import FeedbackRequest, PatternOut
from homepilot.services.energy_insights import EnergyInsightService

router = APIRouter(prefix="/energy", tags=["energy"])


@router.get("/insights", response_model=EnergyInsightsOut)
def energy_insights(energy: EnergyInsightService = Depends(get_energy)):
    return energy.get_insights().to_dict()


@router.get("/suggestions", response_model=List[EnergySuggestionOut])
def energy_suggestions(
    scope: Optional[str] = None,
    energy: EnergyInsightService = Depends(get_energy),
):
    """Suggestions ordered by priority, minus the types rated down."""
    return [s.to_dict() for s in energy.get_suggestions(scope=scope)]


@router.post("/suggestions/feedback", response_model=PatternOut)
def suggestion_feedback(
    payload: FeedbackRequest,
    energy: EnergyInsightService = Depends(get_energy),
):
    """Thumbs up/down on a suggestion type, e.g. {"pattern_key": "timing", "rating": "down"}."""
    return energy.record_suggestion_feedback(payload.pattern_key, payload.rating, scope=payload.scope)


@router.get("/analysis", response_model=PatternOut)
def latest_energy_analysis(
    scope: Optional[str] = None,
    energy: EnergyInsightService = Depends(get_energy),
):
    """
    The most recent stored analysis (written by the energy sync stream).

    Raises:
        404: If no analysis has been stored yet
    """
    pattern = energy.latest_analysis(scope)
    if pattern is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No energy analysis stored yet",
        )
    return pattern
