"""
Pattern schemas - learned patterns, insights and explicit feedback.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from homepilot.models.learned_pattern import PatternType


class PatternOut(BaseModel):
    """
    Schema for a learned pattern.

    Example response:
    {
        "pattern_type": "entity_alias",
        "pattern_key": "living_room",
        "pattern_value": {"natural_name": "living room", "entity_id": "light.living_room"},
        "confidence_score": 0.8,
        "usage_count": 2,
        "learning_source": "user_interaction"
    }
    """
    id: uuid.UUID
    user_id: Optional[str] = None
    pattern_type: str
    pattern_key: str
    pattern_value: Any = None
    confidence_score: float
    usage_count: int
    learning_source: str
    last_used_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FeedbackRequest(BaseModel):
    """
    Thumbs up/down on a suggestion type or any other pattern.

    Example request body:
    {
        "pattern_key": "timing",
        "rating": "down"
    }
    """
    pattern_type: str = Field(
        default=PatternType.SUGGESTION_FEEDBACK,
        min_length=1,
        max_length=100,
        description="Pattern type being rated",
    )
    pattern_key: str = Field(..., min_length=1, description="Pattern key, e.g. a suggestion type")
    rating: Literal["up", "down"] = Field(..., description="up or down")
    scope: Optional[str] = Field(default=None, max_length=100)


class PatternInsightsOut(BaseModel):
    """What has been learned so far."""
    total_patterns: int
    by_type: Dict[str, int]
    by_source: Dict[str, Dict[str, float]]
    top_patterns: List[Dict[str, Any]]


class CorrectionRequest(BaseModel):
    """
    A reply the user corrected.

    Example request body:
    {
        "original": "Turning on the lamp in the den.",
        "corrected": "The den light is light.office_lamp",
        "correction_type": "entity_name"
    }
    """
    original: str = Field(..., min_length=1, max_length=4000)
    corrected: str = Field(..., min_length=1, max_length=4000)
    correction_type: str = Field(default="entity_name", min_length=1, max_length=50)
    scope: Optional[str] = Field(default=None, max_length=100)


class ReplyFeedbackRequest(BaseModel):
    """Thumbs up/down on one assistant reply."""
    reply: str = Field(..., min_length=1, max_length=4000)
    rating: Literal["up", "down"]
    scope: Optional[str] = Field(default=None, max_length=100)
