"""
LearnedPattern model - confidence-scored facts learned from usage.

Identity is (user_id, pattern_type, pattern_key). A NULL user_id is the
global partition. Rows are reinforced on repeat observation and never
hard-deleted by the core.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Float, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from homepilot.db.base import Base
from homepilot.models.entity import utc_now


class LearningSource:
    """Provenance tags for learned patterns."""
    USER_INTERACTION = "user_interaction"
    FEEDBACK = "feedback"
    AUTOMATION = "automation"
    PATTERN_DETECTION = "pattern_detection"

    ALL = (USER_INTERACTION, FEEDBACK, AUTOMATION, PATTERN_DETECTION)


class PatternType:
    """Pattern types the core writes or reads."""
    ENTITY_ALIAS = "entity_alias"
    COMMAND_PATTERN = "command_pattern"
    PREFERENCE = "preference"
    SUGGESTION_FEEDBACK = "suggestion_feedback"
    CORRECTION = "correction"
    ENTITY_ISSUE = "entity_issue"
    ENERGY_ANALYSIS = "energy_analysis"


class LearnedPattern(Base):
    """SQLAlchemy ORM model for the 'learned_patterns' table."""

    __tablename__ = "learned_patterns"
    __table_args__ = (
        Index("idx_learned_patterns_identity", "user_id", "pattern_type", "pattern_key"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # user_id: owning user scope, NULL for global patterns
    user_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)

    pattern_type: Mapped[str] = mapped_column(String(100), nullable=False)
    pattern_key: Mapped[str] = mapped_column(Text, nullable=False)

    # pattern_value: arbitrary payload, e.g. {"natural_name": ..., "entity_id": ...}
    pattern_value: Mapped[Any] = mapped_column(JSON, nullable=True)

    # confidence_score: 0.0 - 1.0, non-decreasing under reinforcement
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    learning_source: Mapped[str] = mapped_column(
        String(50), nullable=False, default=LearningSource.USER_INTERACTION
    )
    source_metadata: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)

    last_used_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "user_id": self.user_id,
            "pattern_type": self.pattern_type,
            "pattern_key": self.pattern_key,
            "pattern_value": self.pattern_value,
            "confidence_score": self.confidence_score,
            "usage_count": self.usage_count,
            "learning_source": self.learning_source,
            "last_used_at": self.last_used_at.isoformat() if self.last_used_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"<LearnedPattern {self.pattern_type}:{self.pattern_key} "
            f"conf={self.confidence_score:.2f} uses={self.usage_count}>"
        )
