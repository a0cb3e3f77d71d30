"""
Tests for the Pattern Store.

This module tests:
- Insert with base confidence and usage 1
- Diminishing reinforcement (0.10 / 0.05 / 0.02), capped at 1.0
- Scope partitions (global vs per-user)
- Query threshold, ordering and limit
- Explicit feedback and disliked suggestion types
- Corrections and exact-confidence replacement
- Insights summary
- PersistenceError on storage failure
"""

import pytest
from sqlalchemy.exc import OperationalError

from homepilot.core.errors import PersistenceError
from homepilot.models.learned_pattern import LearningSource, PatternType
from homepilot.services.pattern_store import PatternStore, reinforcement_delta

ALIAS = PatternType.ENTITY_ALIAS
VALUE = {"natural_name": "living room", "entity_id": "light.living_room"}


class TestReinforcementDelta:
    def test_steps(self):
        assert reinforcement_delta(2) == 0.1
        assert reinforcement_delta(4) == 0.1
        assert reinforcement_delta(5) == 0.05
        assert reinforcement_delta(9) == 0.05
        assert reinforcement_delta(10) == 0.02
        assert reinforcement_delta(250) == 0.02


class TestUpsert:
    """Tests for PatternStore.upsert()."""

    def test_insert_uses_base_confidence(self, pattern_store: PatternStore):
        pattern = pattern_store.upsert(None, ALIAS, "living_room", VALUE, 0.7)

        assert pattern.confidence_score == pytest.approx(0.7)
        assert pattern.usage_count == 1
        assert pattern.learning_source == LearningSource.USER_INTERACTION
        assert pattern.pattern_value == VALUE
        assert pattern.user_id is None

    def test_reinforce_increments_usage_and_confidence(self, pattern_store: PatternStore):
        pattern_store.upsert(None, ALIAS, "living_room", VALUE, 0.7)
        pattern = pattern_store.upsert(None, ALIAS, "living_room", VALUE, 0.7)

        assert pattern.usage_count == 2
        assert pattern.confidence_score == pytest.approx(0.8)

    def test_reinforce_replaces_value(self, pattern_store: PatternStore):
        pattern_store.upsert(None, ALIAS, "living_room", VALUE, 0.7)
        new_value = {"natural_name": "lounge", "entity_id": "light.living_room"}

        pattern = pattern_store.upsert(None, ALIAS, "living_room", new_value, 0.7)

        assert pattern.pattern_value == new_value

    def test_confidence_is_monotonic_and_capped(self, pattern_store: PatternStore):
        """Usage grows by exactly one per call; confidence never drops or exceeds 1.0."""
        previous = 0.0
        for expected_usage in range(1, 31):
            pattern = pattern_store.upsert(None, ALIAS, "hall", {}, 0.5)
            assert pattern.usage_count == expected_usage
            assert pattern.confidence_score >= previous
            assert pattern.confidence_score <= 1.0
            previous = pattern.confidence_score

        assert previous == pytest.approx(1.0)

    def test_diminishing_steps(self, pattern_store: PatternStore):
        pattern_store.upsert(None, ALIAS, "desk", {}, 0.1)
        for _ in range(3):
            pattern_store.upsert(None, ALIAS, "desk", {}, 0.1)
        # usage 2, 3, 4 → +0.1 each
        assert pattern_store.get(None, ALIAS, "desk").confidence_score == pytest.approx(0.4)

        pattern = pattern_store.upsert(None, ALIAS, "desk", {}, 0.1)
        # usage 5 → +0.05
        assert pattern.confidence_score == pytest.approx(0.45)

    def test_base_confidence_ignored_on_reinforce(self, pattern_store: PatternStore):
        pattern_store.upsert(None, ALIAS, "desk", {}, 0.6)
        pattern = pattern_store.upsert(None, ALIAS, "desk", {}, 0.9)

        assert pattern.confidence_score == pytest.approx(0.7)

    def test_scopes_are_separate_partitions(self, pattern_store: PatternStore):
        pattern_store.upsert(None, ALIAS, "living_room", VALUE, 0.7)
        user_pattern = pattern_store.upsert("alice", ALIAS, "living_room", VALUE, 0.7)

        assert user_pattern.usage_count == 1
        assert pattern_store.get(None, ALIAS, "living_room").usage_count == 1
        assert pattern_store.get("alice", ALIAS, "living_room").user_id == "alice"

    def test_storage_failure_raises_persistence_error(self):
        def broken_factory():
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        store = PatternStore(broken_factory)

        with pytest.raises(PersistenceError):
            store.upsert(None, ALIAS, "living_room", VALUE, 0.7)


class TestQuery:
    """Tests for PatternStore.query()."""

    def test_threshold_and_ordering(self, pattern_store: PatternStore):
        pattern_store.upsert(None, ALIAS, "low", {}, 0.3)
        pattern_store.upsert(None, ALIAS, "once", {}, 0.9)
        for _ in range(3):
            pattern_store.upsert(None, ALIAS, "often", {}, 0.6)

        keys = [p.pattern_key for p in pattern_store.query(min_confidence=0.5)]

        assert keys == ["often", "once"]

    def test_threshold_is_inclusive(self, pattern_store: PatternStore):
        pattern_store.upsert(None, ALIAS, "edge", {}, 0.5)

        assert [p.pattern_key for p in pattern_store.query(min_confidence=0.5)] == ["edge"]

    def test_limit(self, pattern_store: PatternStore):
        for i in range(6):
            pattern_store.upsert(None, ALIAS, f"room_{i}", {}, 0.7)

        assert len(pattern_store.query(limit=4)) == 4

    def test_scope_filter(self, pattern_store: PatternStore):
        pattern_store.upsert(None, ALIAS, "global_key", {}, 0.7)
        pattern_store.upsert("bob", ALIAS, "bob_key", {}, 0.7)

        assert [p.pattern_key for p in pattern_store.query()] == ["global_key"]
        assert [p.pattern_key for p in pattern_store.query(scope="bob")] == ["bob_key"]

    def test_type_filter(self, pattern_store: PatternStore):
        pattern_store.upsert(None, ALIAS, "kitchen", {}, 0.7)
        pattern_store.upsert(None, PatternType.COMMAND_PATTERN, "turn on kitchen", {}, 0.6)

        patterns = pattern_store.query(pattern_type=PatternType.COMMAND_PATTERN)

        assert [p.pattern_type for p in patterns] == [PatternType.COMMAND_PATTERN]


class TestFeedback:
    """Tests for explicit thumbs up/down."""

    def test_down_sets_low_confidence(self, pattern_store: PatternStore):
        pattern = pattern_store.record_feedback(None, PatternType.SUGGESTION_FEEDBACK, "timing", "down")

        assert pattern.confidence_score == pytest.approx(0.2)
        assert pattern.learning_source == LearningSource.FEEDBACK
        assert pattern_store.disliked_keys() == ["timing"]

    def test_up_overrides_previous_down(self, pattern_store: PatternStore):
        pattern_store.record_feedback(None, PatternType.SUGGESTION_FEEDBACK, "timing", "down")
        pattern = pattern_store.record_feedback(None, PatternType.SUGGESTION_FEEDBACK, "timing", "up")

        assert pattern.confidence_score == pytest.approx(0.8)
        assert pattern.usage_count == 2
        assert pattern_store.disliked_keys() == []

    def test_disliked_keys_are_scoped(self, pattern_store: PatternStore):
        pattern_store.record_feedback("alice", PatternType.SUGGESTION_FEEDBACK, "efficiency", "down")

        assert pattern_store.disliked_keys() == []
        assert pattern_store.disliked_keys("alice") == ["efficiency"]

    def test_invalid_rating(self, pattern_store: PatternStore):
        with pytest.raises(ValueError):
            pattern_store.record_feedback(None, PatternType.SUGGESTION_FEEDBACK, "timing", "meh")


class TestCorrections:

    def test_entity_name_correction(self, pattern_store: PatternStore):
        pattern = pattern_store.record_correction(
            "alice", "Turning on the den lamp.", "The den lamp is light.office_lamp"
        )

        assert pattern.pattern_type == PatternType.CORRECTION
        assert pattern.pattern_key == "entity_reference"
        assert pattern.confidence_score == pytest.approx(0.9)
        assert pattern.learning_source == LearningSource.FEEDBACK
        assert pattern.user_id == "alice"
        assert pattern.pattern_value["original"] == "Turning on the den lamp."

    def test_repeat_correction_reinforces_and_keeps_latest(self, pattern_store: PatternStore):
        pattern_store.record_correction(None, "den lamp", "light.office_lamp")
        pattern = pattern_store.record_correction(None, "porch", "light.front_door")

        assert pattern.usage_count == 2
        assert pattern.confidence_score == pytest.approx(1.0)
        assert pattern.pattern_value["corrected"] == "light.front_door"

    def test_other_types_use_their_own_key(self, pattern_store: PatternStore):
        pattern = pattern_store.record_correction(None, "It is 20 degrees.", "It is 22 degrees.", "fact")

        assert pattern.pattern_key == "fact"


class TestReplace:

    def test_sets_exact_confidence(self, pattern_store: PatternStore):
        pattern_store.upsert(None, ALIAS, "living_room", VALUE, 0.9)

        pattern = pattern_store.replace(None, ALIAS, "living_room", VALUE, 0.4, source=LearningSource.AUTOMATION)

        assert pattern.confidence_score == pytest.approx(0.4)
        assert pattern.usage_count == 2
        assert pattern.learning_source == LearningSource.AUTOMATION

    def test_without_counting_use(self, pattern_store: PatternStore):
        for value in ({"n": 1}, {"n": 2}):
            pattern = pattern_store.replace(
                None, PatternType.ENERGY_ANALYSIS, "latest_analysis", value, 0.8,
                source=LearningSource.PATTERN_DETECTION, count_use=False,
            )

        assert pattern.usage_count == 1
        assert pattern.pattern_value == {"n": 2}


class TestInsights:
    def test_summary(self, pattern_store: PatternStore):
        pattern_store.upsert(None, ALIAS, "living_room", VALUE, 0.7)
        pattern_store.upsert(None, ALIAS, "living_room", VALUE, 0.7)
        pattern_store.upsert(None, PatternType.COMMAND_PATTERN, "turn on the lights", {}, 0.6)
        pattern_store.record_feedback(None, PatternType.SUGGESTION_FEEDBACK, "timing", "down")

        insights = pattern_store.insights()

        assert insights.total_patterns == 3
        assert insights.by_type == {
            ALIAS: 1,
            PatternType.COMMAND_PATTERN: 1,
            PatternType.SUGGESTION_FEEDBACK: 1,
        }
        assert insights.by_source[LearningSource.USER_INTERACTION]["count"] == 2
        assert insights.by_source[LearningSource.FEEDBACK]["count"] == 1
        assert insights.top_patterns[0]["pattern_key"] == "living_room"

    def test_empty(self, pattern_store: PatternStore):
        insights = pattern_store.insights()

        assert insights.total_patterns == 0
        assert insights.top_patterns == []
