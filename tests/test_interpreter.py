"""
Tests for the Command Interpreter.

This module tests:
- The living-room scenario end to end (reply, action, learned alias)
- Per-action failures appended as warnings without stopping siblings
- Backend errors, timeouts and empty replies → apology, never an exception
- Context comes from the mirror, never the hub
- Energy context only for energy questions
- Storage failures never reach the reply
"""

import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError

from homepilot.ai.monitoring import ai_metrics
from homepilot.core.config import AssistantConfig
from homepilot.core.errors import UnavailableError
from homepilot.models.learned_pattern import PatternType
from homepilot.services.energy_insights import EnergyInsightService
from homepilot.services.interpreter import (
    APOLOGY_REPLY,
    EMPTY_REPLY,
    CommandInterpreter,
    RequestStage,
)
from homepilot.services.learning import LearningQueue
from homepilot.services.pattern_store import PatternStore

from tests.fakes import home_entities


@pytest_asyncio.fixture
async def learning(pattern_store):
    queue = LearningQueue(pattern_store)
    yield queue
    await queue.stop()


@pytest.fixture
def interpreter(hub, provider, mirror, history, pattern_store, learning):
    mirror.upsert_entities(home_entities())
    return CommandInterpreter(
        provider=provider,
        executor=hub,
        entity_source=mirror,
        pattern_store=pattern_store,
        learning_queue=learning,
        config=AssistantConfig(request_timeout=1.0),
        energy=EnergyInsightService(mirror, history, pattern_store),
    )


class TestHappyPath:

    @pytest.mark.asyncio
    async def test_living_room_scenario(self, interpreter, hub, provider, pattern_store, learning):
        provider.reply = "Sure! ACTION: light.turn_on light.living_room"

        result = await interpreter.interpret("turn on the living room lights")
        await learning.join()

        assert result.success is True
        assert result.stage == RequestStage.RESPONDED
        assert result.reply == "Sure!"
        assert hub.calls == [("light", "turn_on", "light.living_room", None)]
        assert [a.success for a in result.actions] == [True]

        alias = pattern_store.get(None, PatternType.ENTITY_ALIAS, "living_room")
        assert alias is not None
        assert alias.pattern_value == {"natural_name": "living room", "entity_id": "light.living_room"}
        assert alias.confidence_score == pytest.approx(0.7)

        command = pattern_store.get(None, PatternType.COMMAND_PATTERN, "turn on the living room lights")
        assert command.pattern_value["type"] == "device_control"

    @pytest.mark.asyncio
    async def test_repeat_reinforces_alias(self, interpreter, provider, pattern_store, learning):
        provider.reply = "Sure! ACTION: light.turn_on light.living_room"

        await interpreter.interpret("turn on the living room lights")
        await interpreter.interpret("turn on the living room lights")
        await learning.join()

        alias = pattern_store.get(None, PatternType.ENTITY_ALIAS, "living_room")
        assert alias.usage_count == 2
        assert alias.confidence_score == pytest.approx(0.8)

    @pytest.mark.asyncio
    async def test_plain_answer_is_verbatim(self, interpreter, hub, provider):
        provider.reply = "  The kitchen light is on.  "

        result = await interpreter.interpret("is the kitchen light on?")

        assert result.reply == "The kitchen light is on."
        assert hub.calls == []

    @pytest.mark.asyncio
    async def test_action_only_reply_gets_fallback_text(self, interpreter, hub, provider):
        provider.reply = "ACTION: light.turn_off light.kitchen"

        result = await interpreter.interpret("kitchen off")

        assert result.success is True
        assert result.reply == EMPTY_REPLY
        assert len(hub.calls) == 1

    @pytest.mark.asyncio
    async def test_metrics_recorded(self, interpreter, provider):
        provider.reply = "Done."

        await interpreter.interpret("hello")

        stats = ai_metrics.get_stats()
        assert stats.total_requests == 1
        assert stats.successful_requests == 1
        assert stats.total_tokens == 150

    @pytest.mark.asyncio
    async def test_scope_is_passed_to_learning(self, interpreter, provider, pattern_store, learning):
        provider.reply = "Sure! ACTION: light.turn_on light.living_room"

        await interpreter.interpret("turn on the living room lights", scope="alice")
        await learning.join()

        assert pattern_store.get("alice", PatternType.ENTITY_ALIAS, "living_room") is not None
        assert pattern_store.get(None, PatternType.ENTITY_ALIAS, "living_room") is None


class TestActionFailures:

    @pytest.mark.asyncio
    async def test_failed_action_is_appended_and_siblings_run(self, interpreter, hub, provider):
        hub.failing["switch.fan"] = "Entity unavailable"
        provider.reply = (
            "On it. ACTION: switch.turn_on switch.fan ACTION: light.turn_on light.kitchen"
        )

        result = await interpreter.interpret("turn on the fan and the kitchen light")

        assert result.success is True
        assert [c[2] for c in hub.calls] == ["switch.fan", "light.kitchen"]
        assert result.reply.startswith("On it.")
        assert "Failed to turn_on switch.fan: Entity unavailable" in result.reply
        assert [a.success for a in result.actions] == [False, True]
        assert result.actions[0].error == "Entity unavailable"

    @pytest.mark.asyncio
    async def test_only_successful_actions_are_learned(self, interpreter, hub, provider, pattern_store, learning):
        hub.failing["light.living_room"] = "boom"
        provider.reply = "Sure! ACTION: light.turn_on light.living_room"

        await interpreter.interpret("turn on the living room lights")
        await learning.join()

        assert pattern_store.get(None, PatternType.ENTITY_ALIAS, "living_room") is None


class TestBackendFailures:

    @pytest.mark.asyncio
    async def test_backend_error_gives_apology(self, interpreter, hub, provider):
        provider.error = "429 rate limited"

        result = await interpreter.interpret("turn on the living room lights")

        assert result.reply == APOLOGY_REPLY
        assert result.success is False
        assert result.stage == RequestStage.FAILED
        assert "rate limited" in result.error
        assert hub.calls == []
        assert ai_metrics.get_stats().failed_requests == 1

    @pytest.mark.asyncio
    async def test_empty_backend_reply_gives_apology(self, interpreter, provider):
        provider.reply = "   "

        result = await interpreter.interpret("hello")

        assert result.reply == APOLOGY_REPLY
        assert result.success is False

    @pytest.mark.asyncio
    async def test_timeout_gives_apology(self, hub, provider, mirror, pattern_store, learning):
        provider.delay = 0.5
        interpreter = CommandInterpreter(
            provider=provider,
            executor=hub,
            entity_source=mirror,
            pattern_store=pattern_store,
            learning_queue=learning,
            config=AssistantConfig(request_timeout=0.05),
        )

        result = await interpreter.interpret("turn on the living room lights")

        assert result.reply == APOLOGY_REPLY
        assert result.error == "Backend timed out"
        assert hub.calls == []


class TestContext:

    @pytest.mark.asyncio
    async def test_context_reads_mirror_not_hub(self, interpreter, hub, provider):
        hub.unavailable = UnavailableError("hub is down")
        provider.reply = "Sure! ACTION: light.turn_on light.living_room"

        result = await interpreter.interpret("turn on the living room lights")

        assert result.success is True
        assert "light.living_room" in provider.prompts[0]

    @pytest.mark.asyncio
    async def test_energy_context_only_for_energy_questions(self, interpreter, provider):
        await interpreter.interpret("turn on the living room lights")
        await interpreter.interpret("how much energy am I using?")

        assert "ENERGY:" not in provider.prompts[0]
        assert "ENERGY:" in provider.prompts[1]
        assert "Start Energy Monitoring" in provider.prompts[1]

    @pytest.mark.asyncio
    async def test_learned_alias_reaches_next_prompt(self, interpreter, provider, learning):
        provider.reply = "Sure! ACTION: light.turn_on light.living_room"

        await interpreter.interpret("turn on the living room lights")
        await learning.join()
        await interpreter.interpret("dim the living room")

        assert 'User calls "living room" → living_room' in provider.prompts[1]


class TestStorageFailures:

    @pytest.mark.asyncio
    async def test_broken_pattern_store_never_reaches_reply(self, hub, provider, mirror):
        def broken_factory():
            raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

        broken_store = PatternStore(broken_factory)
        queue = LearningQueue(broken_store)
        mirror.upsert_entities(home_entities())
        interpreter = CommandInterpreter(
            provider=provider,
            executor=hub,
            entity_source=mirror,
            pattern_store=broken_store,
            learning_queue=queue,
            config=AssistantConfig(),
        )
        provider.reply = "Sure! ACTION: light.turn_on light.living_room"

        try:
            result = await interpreter.interpret("turn on the living room lights")
            await queue.join()
        finally:
            await queue.stop()

        assert result.success is True
        assert result.reply == "Sure!"
        assert len(hub.calls) == 1
