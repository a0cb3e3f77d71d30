"""
Command Interpreter - one utterance in, one conversational reply out.

Pipeline per request:
=====================
    RECEIVED → CONTEXT_BUILT → BACKEND_CALLED → ACTIONS_PARSED
             → ACTIONS_EXECUTED → LEARNED → RESPONDED
    (any stage may end in FAILED)

1. Read entities from the local mirror and patterns from the Pattern Store
   (never the hub), plus energy insights when the utterance asks about energy
2. Build the system prompt with the Context Builder
3. Call the injected NL backend, bounded by AssistantConfig.request_timeout
4. Parse ACTION: tokens out of the reply
5. Execute actions one by one in emission order; each failure becomes a
   warning line on the reply and never stops the remaining actions
6. Post a LearningJob for the successful actions (fire-and-forget)
7. Return the reply

Nothing raises out of interpret(): backend failures, timeouts and
unexpected errors all come back as a polite apology with success=False.

Usage:
======
    interpreter = CommandInterpreter(provider, hub, mirror, pattern_store, learning_queue, config)
    result = await interpreter.interpret("turn on the living room lights")
    print(result.reply)
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from homepilot.ai.actions.grammar import ActionCommand, parse_actions
from homepilot.ai.context import ContextBuilder, needs_energy_insights, summarize_capabilities
from homepilot.ai.monitoring.logger import AILogger, ai_logger
from homepilot.ai.monitoring.metrics import AIMetrics, ai_metrics
from homepilot.ai.providers.base import AIProvider, TokenUsage
from homepilot.core.config import AssistantConfig
from homepilot.core.errors import PersistenceError
from homepilot.environments.base import ActionExecutor, EntitySource
from homepilot.services.energy_insights import EnergyInsightService
from homepilot.services.learning import LearningJob, LearningQueue
from homepilot.services.pattern_store import PatternStore

logger = logging.getLogger("homepilot.services.interpreter")

APOLOGY_REPLY = (
    "I'm having trouble processing that request right now. "
    "Please try again in a moment."
)
EMPTY_REPLY = "I apologize, but I could not generate a response."


class RequestStage(str, Enum):
    """Where a request is in the pipeline."""
    RECEIVED = "received"
    CONTEXT_BUILT = "context_built"
    BACKEND_CALLED = "backend_called"
    ACTIONS_PARSED = "actions_parsed"
    ACTIONS_EXECUTED = "actions_executed"
    LEARNED = "learned"
    RESPONDED = "responded"
    FAILED = "failed"


def failure_line(action: ActionCommand, error: Any) -> str:
    """Warning appended to the reply for one failed action."""
    return f"\n\n⚠️ Failed to {action.service} {action.entity_id}: {error}"


@dataclass
class ActionOutcome:
    """Result of executing one ActionCommand."""
    action: ActionCommand
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {**self.action.to_dict(), "success": self.success, "error": self.error}


@dataclass
class InterpretResult:
    """
    What the UI gets back for one utterance.

    `reply` is always a displayable string, even when success is False.
    """
    reply: str
    success: bool = True
    stage: RequestStage = RequestStage.RESPONDED
    request_id: str = ""
    actions: List[ActionOutcome] = field(default_factory=list)
    provider: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reply": self.reply,
            "success": self.success,
            "stage": self.stage.value,
            "request_id": self.request_id,
            "actions": [a.to_dict() for a in self.actions],
            "provider": self.provider,
            "error": self.error,
        }


class CommandInterpreter:
    """Turns utterances into replies and device actions."""

    def __init__(
        self,
        provider: AIProvider,
        executor: ActionExecutor,
        entity_source: EntitySource,
        pattern_store: PatternStore,
        learning_queue: LearningQueue,
        config: AssistantConfig,
        energy: Optional[EnergyInsightService] = None,
        context_builder: Optional[ContextBuilder] = None,
        monitor_logger: AILogger = ai_logger,
        metrics: AIMetrics = ai_metrics,
    ):
        self.provider = provider
        self.executor = executor
        self.entity_source = entity_source
        self.pattern_store = pattern_store
        self.learning_queue = learning_queue
        self.config = config
        self.energy = energy
        self.context_builder = context_builder or ContextBuilder(config)
        self.ai_logger = monitor_logger
        self.metrics = metrics

    # -------------------------------------------------------------------------
    # CONTEXT
    # -------------------------------------------------------------------------

    def _load_patterns(self, scope: Optional[str]) -> list:
        try:
            return self.pattern_store.query(
                min_confidence=self.config.min_pattern_confidence,
                limit=self.config.pattern_limit,
                scope=scope,
            )
        except PersistenceError as e:
            logger.warning(f"Continuing without learned patterns: {e}")
            return []

    def _load_energy(self, utterance: str, scope: Optional[str]):
        if self.energy is None or not needs_energy_insights(utterance):
            return None, []
        try:
            insights = self.energy.get_insights()
            suggestions = self.energy.get_suggestions(scope=scope, insights=insights)
            return insights, suggestions
        except PersistenceError as e:
            logger.warning(f"Continuing without energy insights: {e}")
            return None, []

    async def build_context(self, utterance: str, scope: Optional[str] = None) -> str:
        entities = await self.entity_source.list_entities()
        patterns = self._load_patterns(scope)
        energy, suggestions = self._load_energy(utterance, scope)
        return self.context_builder.build(
            utterance,
            entities,
            summarize_capabilities(entities),
            patterns,
            energy=energy,
            suggestions=suggestions,
        )

    # -------------------------------------------------------------------------
    # EXECUTION
    # -------------------------------------------------------------------------

    async def execute_actions(self, request_id: str, actions: List[ActionCommand]) -> List[ActionOutcome]:
        """Run actions sequentially. A failure never stops the ones after it."""
        outcomes = []
        for action in actions:
            try:
                await self.executor.call_service(
                    action.domain, action.service, action.entity_id, action.data
                )
            except Exception as e:
                logger.warning(f"Action {action.service_call} on {action.entity_id} failed: {e}")
                outcomes.append(ActionOutcome(action=action, success=False, error=str(e)))
                self.ai_logger.log_action(request_id, action.service_call, action.entity_id, False, str(e))
                continue
            outcomes.append(ActionOutcome(action=action, success=True))
            self.ai_logger.log_action(request_id, action.service_call, action.entity_id, True)
        return outcomes

    def _queue_learning(self, utterance: str, outcomes: List[ActionOutcome], scope: Optional[str]) -> bool:
        job = LearningJob(
            utterance=utterance,
            actions=[o.action for o in outcomes if o.success],
            scope=scope,
        )
        try:
            self.learning_queue.submit(job)
        except Exception as e:
            logger.warning(f"Could not queue learning job: {e}")
            return False
        return True

    # -------------------------------------------------------------------------
    # MAIN ENTRY POINT
    # -------------------------------------------------------------------------

    def _advance(self, request_id: str, stage: RequestStage) -> RequestStage:
        self.ai_logger.log_event(request_id, "request_stage", {"stage": stage.value})
        return stage

    async def interpret(self, utterance: str, scope: Optional[str] = None) -> InterpretResult:
        """
        Interpret one utterance. Never raises.

        Args:
            utterance: what the user said
            scope: optional user id partitioning learned patterns
        """
        request_id = str(uuid.uuid4())
        provider_name = self.provider.provider_type.value
        stage = self._advance(request_id, RequestStage.RECEIVED)
        outcomes: List[ActionOutcome] = []

        try:
            system_prompt = await self.build_context(utterance, scope)
            stage = self._advance(request_id, RequestStage.CONTEXT_BUILT)

            self.ai_logger.log_request(
                request_id=request_id,
                prompt=utterance,
                provider=provider_name,
                model=self.provider.model,
                scope=scope,
                metadata={"context_chars": len(system_prompt)},
            )

            start_time = time.time()
            try:
                response = await asyncio.wait_for(
                    self.provider.complete(system_prompt, utterance, max_tokens=self.config.max_tokens),
                    timeout=self.config.request_timeout,
                )
            except Exception:
                self.metrics.record_request(
                    request_id=request_id,
                    provider=self.provider.provider_type,
                    model=self.provider.model,
                    tokens=TokenUsage(),
                    latency_ms=(time.time() - start_time) * 1000,
                    success=False,
                )
                raise

            stage = self._advance(request_id, RequestStage.BACKEND_CALLED)
            self.ai_logger.log_response(request_id, response)
            self.metrics.record_request(
                request_id=request_id,
                provider=response.provider,
                model=response.model,
                tokens=response.usage,
                latency_ms=response.latency_ms,
                success=True,
            )

            parsed = parse_actions(response.content)
            stage = self._advance(request_id, RequestStage.ACTIONS_PARSED)
            reply = parsed.text or EMPTY_REPLY

            outcomes = await self.execute_actions(request_id, parsed.actions)
            for outcome in outcomes:
                if not outcome.success:
                    reply += failure_line(outcome.action, outcome.error)
            stage = self._advance(request_id, RequestStage.ACTIONS_EXECUTED)

        except Exception as e:
            error = "Backend timed out" if isinstance(e, asyncio.TimeoutError) else str(e)
            self.ai_logger.log_error(request_id, error, stage.value)
            if outcomes:
                self._queue_learning(utterance, outcomes, scope)
            self._advance(request_id, RequestStage.FAILED)
            return InterpretResult(
                reply=APOLOGY_REPLY,
                success=False,
                stage=RequestStage.FAILED,
                request_id=request_id,
                actions=outcomes,
                provider=provider_name,
                error=error,
            )

        if self._queue_learning(utterance, outcomes, scope):
            self._advance(request_id, RequestStage.LEARNED)
        self._advance(request_id, RequestStage.RESPONDED)

        return InterpretResult(
            reply=reply,
            success=True,
            stage=RequestStage.RESPONDED,
            request_id=request_id,
            actions=outcomes,
            provider=provider_name,
        )
