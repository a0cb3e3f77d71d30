"""
Patterns router - inspect what the assistant has learned and rate it.

Feedback is stored as a pattern like any other: thumbs up pins the
pattern's confidence at 0.8, thumbs down at 0.2. Suggestion types rated
down are no longer offered by the energy suggestions.

Corrections (0.9 confidence) are shown to the NL backend in every prompt.
A thumbs-down on a reply is scanned for complaints about wrong answers or
confused devices and stored as low-confidence feedback patterns.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from homepilot.deps import get_pattern_store
from homepilot.schemas.pattern import (
    CorrectionRequest,
    FeedbackRequest,
    PatternInsightsOut,
    PatternOut,
    ReplyFeedbackRequest,
)
from homepilot.services.learning import learn_from_reply_feedback
from homepilot.services.pattern_store import PatternStore

# ---------------------------------------------------------------------------
# ROUTER SETUP
# ---------------------------------------------------------------------------
router = APIRouter(prefix="/patterns", tags=["patterns"])


@router.get("", response_model=List[PatternOut])
def list_patterns(
    scope: Optional[str] = None,
    pattern_type: Optional[str] = None,
    min_confidence: float = Query(0.5, ge=0.0, le=1.0),
    limit: int = Query(20, ge=1, le=500),
    store: PatternStore = Depends(get_pattern_store),
):
    """Most used patterns first, then most confident."""
    return store.query(
        min_confidence=min_confidence,
        limit=limit,
        scope=scope,
        pattern_type=pattern_type,
    )


@router.get("/insights", response_model=PatternInsightsOut)
def pattern_insights(
    scope: Optional[str] = None,
    store: PatternStore = Depends(get_pattern_store),
):
    return store.insights(scope).to_dict()


@router.post("/feedback", response_model=PatternOut)
def submit_feedback(
    payload: FeedbackRequest,
    store: PatternStore = Depends(get_pattern_store),
):
    """
    Thumbs up/down on a pattern.

    Example: {"pattern_key": "timing", "rating": "down"} stops the
    off-peak timing suggestion from being offered again.
    """
    return store.record_feedback(
        payload.scope,
        payload.pattern_type,
        payload.pattern_key,
        payload.rating,
    )


@router.post("/corrections", response_model=PatternOut)
def submit_correction(
    payload: CorrectionRequest,
    store: PatternStore = Depends(get_pattern_store),
):
    """Remember how the user corrected a reply, e.g. the right name for a device."""
    return store.record_correction(
        payload.scope,
        payload.original,
        payload.corrected,
        payload.correction_type,
    )


@router.post("/reply-feedback", response_model=List[PatternOut])
def submit_reply_feedback(
    payload: ReplyFeedbackRequest,
    store: PatternStore = Depends(get_pattern_store),
):
    """Thumbs up/down on an assistant reply. Returns the patterns it taught."""
    return learn_from_reply_feedback(store, payload.reply, payload.rating, scope=payload.scope)
