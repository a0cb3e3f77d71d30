"""
Test doubles shared by the test modules.

- FakeHub: in-memory entity source + action executor
- ScriptedProvider: NL backend with a scripted reply
- snapshot()/home_entities(): entity factories
"""

import asyncio
from typing import Any, Dict, List, Optional

from homepilot.ai.providers.base import AIProvider, AIResponse, ProviderType, TokenUsage
from homepilot.core.errors import ActionExecutionError
from homepilot.environments.base import ActionExecutor, EntitySnapshot, EntitySource


class FakeHub(EntitySource, ActionExecutor):
    """
    In-memory hub.

    Attributes:
        entities: what list_entities() returns
        calls: every (domain, service, entity_id, data) received, in order
        failing: entity ids whose service calls raise ActionExecutionError
        unavailable: when set, list_entities() raises it
        delay: seconds list_entities() stalls before answering
    """

    def __init__(self, entities: Optional[List[EntitySnapshot]] = None):
        self.entities = list(entities or [])
        self.calls: List[tuple] = []
        self.failing: Dict[str, str] = {}
        self.unavailable: Optional[Exception] = None
        self.delay: float = 0.0

    async def list_entities(self) -> List[EntitySnapshot]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.unavailable is not None:
            raise self.unavailable
        return list(self.entities)

    async def call_service(self, domain, service, entity_id=None, data=None) -> Dict[str, Any]:
        self.calls.append((domain, service, entity_id, data))
        if entity_id in self.failing:
            raise ActionExecutionError(self.failing[entity_id], domain, service, entity_id)
        return {"success": True}

    def set_state(self, entity_id: str, state: str) -> None:
        for entity in self.entities:
            if entity.entity_id == entity_id:
                entity.state = state


class ScriptedProvider(AIProvider):
    """
    NL backend that replies with a fixed script.

    Set `reply` for the next answer, `error` to fail, `delay` to stall.
    Every system prompt received is kept in `prompts`.
    """

    provider_type = ProviderType.OPENAI

    def __init__(self, reply: str = "OK", model: str = "scripted"):
        self.model = model
        self.reply = reply
        self.error: Optional[str] = None
        self.delay: float = 0.0
        self.prompts: List[str] = []

    async def generate(self, prompt, system_prompt=None, temperature=0.7, max_tokens=500, **kwargs):
        self.prompts.append(system_prompt or "")
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            return self._create_error_response(self.error, self.model)
        return AIResponse(
            content=self.reply,
            provider=self.provider_type,
            model=self.model,
            usage=TokenUsage(prompt_tokens=120, completion_tokens=30),
            latency_ms=12.0,
        )


def snapshot(entity_id: str, state: str, name: str = "", **attributes) -> EntitySnapshot:
    """Build an EntitySnapshot with a friendly name and extra attributes."""
    if name:
        attributes["friendly_name"] = name
    return EntitySnapshot(entity_id=entity_id, state=state, attributes=attributes)


def home_entities() -> List[EntitySnapshot]:
    """A small home: lights, a fan switch, a thermostat and power sensors."""
    return [
        snapshot("light.living_room", "off", "Living Room Light"),
        snapshot("light.kitchen", "on", "Kitchen Light"),
        snapshot("switch.fan", "off", "Fan"),
        snapshot("climate.thermostat", "heat", "Thermostat", temperature=21),
        snapshot(
            "sensor.house_power", "1250", "House Power",
            unit_of_measurement="W", device_class="power",
        ),
        snapshot(
            "sensor.solar_power", "800", "Solar Power",
            unit_of_measurement="W", device_class="power",
        ),
    ]

