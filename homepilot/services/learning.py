"""
Learning worker - turns finished commands into learned patterns.

The Command Interpreter never waits for learning. It posts one LearningJob
per request to a LearningQueue, and a single asyncio worker task drains the
queue into the Pattern Store. Storage failures are logged and dropped.

What gets learned:
==================
1. Entity aliases: for each successfully executed action with a target,
   every 2-word and 3-word window of the lowercased utterance whose
   underscored form appears inside the entity's local part
   ("living room" → "living_room" ⊂ "light.living_room") is stored as an
   `entity_alias` keyed by the local part (base confidence 0.7 / 0.8).
2. Command shapes: "turn on/off X", "set X to N", "open/close X" are
   stored as `command_pattern` keyed by the lowercased match (base 0.6).

Replies the user rated down are checked for two complaints:
"wrong"/"incorrect" → `correction:response_issue` (0.3) and
"device"/"entity" → `entity_issue:needs_clarification` (0.4).
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from homepilot.ai.actions.grammar import ActionCommand
from homepilot.core.errors import PersistenceError
from homepilot.environments.base import split_entity_id
from homepilot.models.learned_pattern import LearnedPattern, LearningSource, PatternType
from homepilot.services.pattern_store import PatternStore

logger = logging.getLogger("homepilot.services.learning")

# window size -> base confidence
ALIAS_WINDOWS = {2: 0.7, 3: 0.8}

COMMAND_SHAPES = [
    (re.compile(r"turn (on|off) (.+)", re.IGNORECASE), "device_control"),
    (re.compile(r"set (.+) to (\d+)", re.IGNORECASE), "value_set"),
    (re.compile(r"(open|close) (.+)", re.IGNORECASE), "cover_control"),
]
COMMAND_PATTERN_CONFIDENCE = 0.6

# (trigger words, pattern type, key, base confidence, reason)
REPLY_ISSUES = [
    (("wrong", "incorrect"), PatternType.CORRECTION, "response_issue", 0.3, "incorrect_response"),
    (("device", "entity"), PatternType.ENTITY_ISSUE, "needs_clarification", 0.4, "entity_confusion"),
]


@dataclass
class LearningJob:
    """
    Everything the worker needs from one finished request.

    Attributes:
        utterance: the raw user utterance
        actions: actions that executed successfully
        scope: optional user scope for the learned patterns
    """
    utterance: str
    actions: List[ActionCommand] = field(default_factory=list)
    scope: Optional[str] = None


def alias_candidates(utterance: str, entity_id: str) -> List[Tuple[str, float]]:
    """Word windows of the utterance that name the entity, with base confidence."""
    local_part = split_entity_id(entity_id)[1]
    if not local_part:
        return []

    words = utterance.lower().split()
    candidates = []
    for size, confidence in ALIAS_WINDOWS.items():
        for i in range(len(words) - size + 1):
            window = words[i:i + size]
            if "_".join(window) in local_part:
                candidates.append((" ".join(window), confidence))
    return candidates


def command_patterns(utterance: str) -> List[Tuple[str, Dict[str, Any]]]:
    """Fixed command shapes found in the utterance, as (key, value) pairs."""
    found = []
    for regex, shape in COMMAND_SHAPES:
        match = regex.search(utterance)
        if match:
            found.append((match.group(0).lower(), {"type": shape, "original": match.group(0)}))
    return found


def learn_from_interaction(store: PatternStore, job: LearningJob) -> int:
    """
    Upsert every pattern a job yields. Returns the number of upserts.

    Raises:
        PersistenceError: the store failed part way through
    """
    upserts = 0

    for action in job.actions:
        if not action.entity_id:
            continue
        local_part = split_entity_id(action.entity_id)[1]
        for natural_name, confidence in alias_candidates(job.utterance, action.entity_id):
            store.upsert(
                job.scope,
                PatternType.ENTITY_ALIAS,
                local_part,
                {"natural_name": natural_name, "entity_id": action.entity_id},
                confidence,
            )
            upserts += 1

    for key, value in command_patterns(job.utterance):
        store.upsert(job.scope, PatternType.COMMAND_PATTERN, key, value, COMMAND_PATTERN_CONFIDENCE)
        upserts += 1

    return upserts


def learn_from_reply_feedback(
    store: PatternStore,
    reply: str,
    rating: str,
    scope: Optional[str] = None,
) -> List[LearnedPattern]:
    """
    Turn a rated assistant reply into feedback patterns.

    Only thumbs-down ratings teach anything. Returns the stored patterns.
    """
    if rating != "down":
        return []

    lowered = reply.lower()
    learned = []
    for words, pattern_type, key, confidence, reason in REPLY_ISSUES:
        if not any(word in lowered for word in words):
            continue
        learned.append(store.upsert(
            scope,
            pattern_type,
            key,
            {"content": reply},
            confidence,
            source=LearningSource.FEEDBACK,
            source_metadata={"feedback_type": "negative", "reason": reason},
        ))
    return learned


class LearningQueue:
    """
    Fire-and-forget queue consumed by one dedicated worker task.

    The worker starts lazily on the first submit, inside whatever event
    loop is running at that point.
    """

    def __init__(self, store: PatternStore):
        self.store = store
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    def _ensure_worker(self) -> asyncio.Queue:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())
        return self._queue

    def submit(self, job: LearningJob) -> None:
        """Queue a job. Never blocks and never raises for storage problems."""
        self._ensure_worker().put_nowait(job)

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                count = learn_from_interaction(self.store, job)
                logger.debug(f"Learned {count} pattern(s) from: {job.utterance!r}")
            except PersistenceError as e:
                logger.warning(f"Learning failed, dropping job: {e}")
            except Exception:
                logger.exception("Unexpected error in learning worker")
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every submitted job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        """Cancel the worker task. Unprocessed jobs are discarded."""
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        self._queue = None

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0
