"""
Pattern Store - confidence-scored, usage-weighted memory of learned facts.

A pattern is identified by (scope, pattern_type, pattern_key). Scope is an
optional user id; None is the global partition and is matched with IS NULL,
never with "= NULL".

Reinforcement:
==============
Seeing an existing pattern again bumps its usage and raises its confidence
by a step that shrinks as the pattern becomes established:

    new usage < 5   → +0.10
    new usage < 10  → +0.05
    otherwise       → +0.02

Confidence is capped at 1.0 and never lowered by reinforcement.

Usage:
======
    store = PatternStore(SessionLocal)
    store.upsert(None, "entity_alias", "living_room",
                 {"natural_name": "living room", "entity_id": "light.living_room"}, 0.7)
    patterns = store.query(min_confidence=0.5, limit=20)
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from homepilot.core.errors import PersistenceError
from homepilot.models.learned_pattern import LearnedPattern, LearningSource, PatternType

logger = logging.getLogger("homepilot.services.patterns")

FEEDBACK_CONFIDENCE = {"up": 0.8, "down": 0.2}
CORRECTION_CONFIDENCE = 0.9
CORRECTION_KEYS = {"entity_name": "entity_reference"}


def reinforcement_delta(usage_count: int) -> float:
    """Confidence step for a pattern that has just reached `usage_count` uses."""
    if usage_count < 5:
        return 0.1
    if usage_count < 10:
        return 0.05
    return 0.02


def adjusted_confidence(confidence: float, usage_count: int) -> float:
    """Confidence with a usage bonus, used for ranking insights."""
    return min(1.0, confidence + min(0.3, usage_count * 0.02))


@dataclass
class PatternInsights:
    """Summary of what has been learned so far."""
    total_patterns: int = 0
    by_type: Dict[str, int] = field(default_factory=dict)
    by_source: Dict[str, Dict[str, float]] = field(default_factory=dict)
    top_patterns: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_patterns": self.total_patterns,
            "by_type": self.by_type,
            "by_source": self.by_source,
            "top_patterns": self.top_patterns,
        }


class PatternStore:
    """Upsert/reinforce and query learned patterns."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    # -------------------------------------------------------------------------
    # HELPERS
    # -------------------------------------------------------------------------

    @staticmethod
    def _scope_clause(scope: Optional[str]):
        if scope is None:
            return LearnedPattern.user_id.is_(None)
        return LearnedPattern.user_id == scope

    def _find(self, session: Session, scope, pattern_type, pattern_key) -> Optional[LearnedPattern]:
        stmt = select(LearnedPattern).where(
            self._scope_clause(scope),
            LearnedPattern.pattern_type == pattern_type,
            LearnedPattern.pattern_key == pattern_key,
        )
        return session.scalars(stmt).first()

    # -------------------------------------------------------------------------
    # WRITE
    # -------------------------------------------------------------------------

    def upsert(
        self,
        scope: Optional[str],
        pattern_type: str,
        pattern_key: str,
        pattern_value: Any,
        base_confidence: float,
        source: str = LearningSource.USER_INTERACTION,
        source_metadata: Optional[Dict[str, Any]] = None,
    ) -> LearnedPattern:
        """
        Reinforce an existing pattern or insert a new one.

        Returns:
            The stored row, detached from its session.

        Raises:
            PersistenceError: the underlying store failed
        """
        now = datetime.now(timezone.utc)
        try:
            with self._session_factory() as session:
                pattern = self._find(session, scope, pattern_type, pattern_key)

                if pattern is not None:
                    pattern.usage_count = (pattern.usage_count or 0) + 1
                    delta = reinforcement_delta(pattern.usage_count)
                    pattern.confidence_score = min(1.0, pattern.confidence_score + delta)
                    pattern.pattern_value = pattern_value
                    pattern.last_used_at = now
                    pattern.updated_at = now
                else:
                    pattern = LearnedPattern(
                        user_id=scope,
                        pattern_type=pattern_type,
                        pattern_key=pattern_key,
                        pattern_value=pattern_value,
                        confidence_score=min(1.0, base_confidence),
                        usage_count=1,
                        learning_source=source,
                        source_metadata=source_metadata or {"timestamp": now.isoformat()},
                        last_used_at=now,
                        created_at=now,
                        updated_at=now,
                    )
                    session.add(pattern)

                session.commit()
                session.refresh(pattern)
                session.expunge(pattern)
        except SQLAlchemyError as e:
            logger.error(f"Failed to upsert pattern {pattern_type}:{pattern_key}: {e}")
            raise PersistenceError(f"Failed to store pattern: {e}") from e

        logger.debug(f"Stored pattern {pattern!r}")
        return pattern

    def replace(
        self,
        scope: Optional[str],
        pattern_type: str,
        pattern_key: str,
        pattern_value: Any,
        confidence: float,
        source: str,
        source_metadata: Optional[Dict[str, Any]] = None,
        count_use: bool = True,
    ) -> LearnedPattern:
        """
        Store a pattern with an exact confidence instead of reinforcing it.

        Used for explicit ratings and for computed summaries that are
        overwritten on every pass. With count_use=False the usage counter
        stays at 1.

        Raises:
            PersistenceError: the underlying store failed
        """
        now = datetime.now(timezone.utc)
        try:
            with self._session_factory() as session:
                pattern = self._find(session, scope, pattern_type, pattern_key)
                if pattern is None:
                    pattern = LearnedPattern(
                        user_id=scope,
                        pattern_type=pattern_type,
                        pattern_key=pattern_key,
                        usage_count=0,
                        created_at=now,
                    )
                    session.add(pattern)

                pattern.pattern_value = pattern_value
                pattern.confidence_score = min(1.0, confidence)
                if count_use or not pattern.usage_count:
                    pattern.usage_count = (pattern.usage_count or 0) + 1
                pattern.learning_source = source
                pattern.source_metadata = source_metadata or {"timestamp": now.isoformat()}
                pattern.last_used_at = now
                pattern.updated_at = now

                session.commit()
                session.refresh(pattern)
                session.expunge(pattern)
        except SQLAlchemyError as e:
            logger.error(f"Failed to replace pattern {pattern_type}:{pattern_key}: {e}")
            raise PersistenceError(f"Failed to store pattern: {e}") from e

        return pattern

    def record_feedback(
        self,
        scope: Optional[str],
        pattern_type: str,
        pattern_key: str,
        rating: str,
        pattern_value: Any = None,
    ) -> LearnedPattern:
        """
        Store an explicit thumbs up/down.

        An explicit rating overwrites the confidence (0.8 up, 0.2 down)
        instead of reinforcing it.
        """
        if rating not in FEEDBACK_CONFIDENCE:
            raise ValueError(f"rating must be 'up' or 'down', got {rating!r}")

        timestamp = datetime.now(timezone.utc).isoformat()
        pattern = self.replace(
            scope,
            pattern_type,
            pattern_key,
            pattern_value if pattern_value is not None else {"rating": rating},
            FEEDBACK_CONFIDENCE[rating],
            source=LearningSource.FEEDBACK,
            source_metadata={"rating": rating, "timestamp": timestamp},
        )
        logger.info(f"Recorded '{rating}' feedback for {pattern_type}:{pattern_key}")
        return pattern

    def record_correction(
        self,
        scope: Optional[str],
        original: str,
        corrected: str,
        correction_type: str = "entity_name",
    ) -> LearnedPattern:
        """
        Remember a reply the user corrected.

        Entity name corrections share the `entity_reference` key so the
        latest one wins; any other correction type is its own key.
        """
        timestamp = datetime.now(timezone.utc).isoformat()
        pattern = self.upsert(
            scope,
            PatternType.CORRECTION,
            CORRECTION_KEYS.get(correction_type, correction_type),
            {"original": original, "corrected": corrected, "correction_type": correction_type},
            CORRECTION_CONFIDENCE,
            source=LearningSource.FEEDBACK,
            source_metadata={"correction_type": correction_type, "timestamp": timestamp},
        )
        logger.info(f"Recorded {correction_type} correction")
        return pattern

    # -------------------------------------------------------------------------
    # READ
    # -------------------------------------------------------------------------

    def get(self, scope: Optional[str], pattern_type: str, pattern_key: str) -> Optional[LearnedPattern]:
        try:
            with self._session_factory() as session:
                return self._find(session, scope, pattern_type, pattern_key)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to fetch pattern: {e}") from e

    def query(
        self,
        min_confidence: float = 0.5,
        limit: int = 20,
        scope: Optional[str] = None,
        pattern_type: Optional[str] = None,
    ) -> List[LearnedPattern]:
        """Patterns at or above the threshold, most used first."""
        stmt = select(LearnedPattern).where(
            self._scope_clause(scope),
            LearnedPattern.confidence_score >= min_confidence,
        )
        if pattern_type:
            stmt = stmt.where(LearnedPattern.pattern_type == pattern_type)
        stmt = stmt.order_by(
            LearnedPattern.usage_count.desc(),
            LearnedPattern.confidence_score.desc(),
        ).limit(limit)

        try:
            with self._session_factory() as session:
                return list(session.scalars(stmt))
        except SQLAlchemyError as e:
            logger.error(f"Failed to query patterns: {e}")
            raise PersistenceError(f"Failed to query patterns: {e}") from e

    def disliked_keys(self, scope: Optional[str] = None) -> List[str]:
        """Suggestion types the user has rated down."""
        stmt = select(LearnedPattern.pattern_key).where(
            self._scope_clause(scope),
            LearnedPattern.pattern_type == PatternType.SUGGESTION_FEEDBACK,
            LearnedPattern.confidence_score < 0.5,
        )
        try:
            with self._session_factory() as session:
                return list(session.scalars(stmt))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to fetch suggestion feedback: {e}") from e

    def insights(self, scope: Optional[str] = None) -> PatternInsights:
        """Counts by type and source plus the ten strongest patterns."""
        try:
            with self._session_factory() as session:
                patterns = list(session.scalars(
                    select(LearnedPattern).where(self._scope_clause(scope))
                ))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to compute pattern insights: {e}") from e

        by_type: Dict[str, int] = defaultdict(int)
        source_totals: Dict[str, List[float]] = defaultdict(list)
        for pattern in patterns:
            by_type[pattern.pattern_type] += 1
            source_totals[pattern.learning_source].append(
                adjusted_confidence(pattern.confidence_score, pattern.usage_count)
            )

        by_source = {
            source: {
                "count": len(scores),
                "avg_confidence": round(sum(scores) / len(scores), 3),
            }
            for source, scores in source_totals.items()
        }

        ranked = sorted(
            patterns,
            key=lambda p: adjusted_confidence(p.confidence_score, p.usage_count),
            reverse=True,
        )
        top = []
        for pattern in ranked[:10]:
            item = pattern.to_dict()
            item["adjusted_confidence"] = round(
                adjusted_confidence(pattern.confidence_score, pattern.usage_count), 3
            )
            top.append(item)

        return PatternInsights(
            total_patterns=len(patterns),
            by_type=dict(by_type),
            by_source=by_source,
            top_patterns=top,
        )
