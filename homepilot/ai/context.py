"""
Context Builder - the bounded system prompt for one command.

Turns what the Interpreter gathered for a request (mirrored entities, a
capability summary, learned patterns and, for energy questions, insights
and suggestions) into a single text blob for the NL backend.

Design Principles:
==================
1. **Pure**: no I/O. Everything is handed in by the caller.
2. **Deterministic**: the same inputs always give the same blob.
3. **Bounded**: entity listing and total size are capped by AssistantConfig;
   the rules block always survives truncation.

Usage:
======
```python
from homepilot.ai.context import ContextBuilder, needs_energy_insights, summarize_capabilities

builder = ContextBuilder(AssistantConfig())
capabilities = summarize_capabilities(entities)
blob = builder.build("turn on the kitchen light", entities, capabilities, patterns)
```
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from homepilot.ai.prompts.assistant_prompts import (
    ACTION_FORMAT_BLOCK,
    ASSISTANT_INTRO,
    RULES_BLOCK,
)
from homepilot.core.config import AssistantConfig
from homepilot.environments.base import EntitySnapshot
from homepilot.models.learned_pattern import LearnedPattern, PatternType
from homepilot.services.energy_insights import EnergyInsights, EnergySuggestion

ENERGY_TERMS = ("energy", "power", "cost", "save", "usage")

# Pattern types that are relevant to every utterance
ALWAYS_RELEVANT_TYPES = (PatternType.PREFERENCE, PatternType.ENTITY_ALIAS, PatternType.CORRECTION)
CORRECTION_PREVIEW_CHARS = 80

MAX_RENDERED_PATTERNS = 5
MAX_RENDERED_SUGGESTIONS = 2
TRUNCATION_MARKER = "\n..."


def needs_energy_insights(utterance: str) -> bool:
    """True when the utterance mentions an energy-related term."""
    lowered = utterance.lower()
    return any(term in lowered for term in ENERGY_TERMS)


# ---------------------------------------------------------------------------
# CAPABILITIES
# ---------------------------------------------------------------------------

@dataclass
class CapabilitySummary:
    """What the home can do, derived from the entity list."""
    total_entities: int = 0
    domains: Dict[str, int] = field(default_factory=dict)
    has_solar: bool = False
    has_battery: bool = False
    has_climate_control: bool = False
    has_lighting: bool = False
    lights: int = 0
    switches: int = 0
    climate: int = 0

    @property
    def features(self) -> List[str]:
        features = []
        if self.has_solar:
            features.append("solar")
        if self.has_battery:
            features.append("battery")
        if self.has_climate_control:
            features.append("climate")
        return features

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_entities": self.total_entities,
            "domains": self.domains,
            "has_solar": self.has_solar,
            "has_battery": self.has_battery,
            "has_climate_control": self.has_climate_control,
            "has_lighting": self.has_lighting,
            "lights": self.lights,
            "switches": self.switches,
            "climate": self.climate,
        }


def summarize_capabilities(entities: Sequence[EntitySnapshot]) -> CapabilitySummary:
    """Count entities per domain and derive the feature flags."""
    domains = Counter(e.domain for e in entities)

    solar = [
        e for e in entities
        if "solar" in e.entity_id
        or "pv" in e.entity_id
        or (e.device_class == "power" and e.state != "unavailable")
    ]
    battery = [e for e in entities if "battery" in e.entity_id or e.device_class == "battery"]
    climate = [e for e in entities if e.domain in ("climate", "thermostat")]

    return CapabilitySummary(
        total_entities=len(entities),
        domains=dict(domains),
        has_solar=bool(solar),
        has_battery=bool(battery),
        has_climate_control=bool(climate),
        has_lighting=domains.get("light", 0) > 0,
        lights=domains.get("light", 0),
        switches=domains.get("switch", 0),
        climate=len(climate),
    )


# ---------------------------------------------------------------------------
# CONTEXT BUILDER
# ---------------------------------------------------------------------------

class ContextBuilder:
    """Builds the system prompt for one request."""

    def __init__(self, config: AssistantConfig):
        self.config = config

    def select_patterns(self, utterance: str, patterns: Sequence[LearnedPattern]) -> List[LearnedPattern]:
        """Patterns whose key appears in the utterance, or whose type is always relevant."""
        lowered = utterance.lower()
        relevant = [
            p for p in patterns
            if p.pattern_type in ALWAYS_RELEVANT_TYPES
            or (p.pattern_key and p.pattern_key.lower() in lowered)
        ]
        return relevant[:MAX_RENDERED_PATTERNS]

    @staticmethod
    def render_pattern(pattern: LearnedPattern) -> str:
        if pattern.pattern_type == PatternType.ENTITY_ALIAS:
            value = pattern.pattern_value if isinstance(pattern.pattern_value, dict) else {}
            natural_name = value.get("natural_name", pattern.pattern_key)
            return f'- User calls "{natural_name}" → {pattern.pattern_key}'
        if pattern.pattern_type == PatternType.CORRECTION:
            value = pattern.pattern_value if isinstance(pattern.pattern_value, dict) else {}
            original = str(value.get("original", ""))[:CORRECTION_PREVIEW_CHARS]
            corrected = str(value.get("corrected", ""))[:CORRECTION_PREVIEW_CHARS]
            return f'- Correction: say "{corrected}", not "{original}"'
        return f"- {pattern.pattern_type}: {pattern.pattern_key}"

    def render_entities(self, entities: Sequence[EntitySnapshot]) -> str:
        """Entity listing grouped by domain, capped at max_context_entities."""
        limit = self.config.max_context_entities
        shown = sorted(entities, key=lambda e: (e.domain, e.entity_id))[:limit]

        by_domain: Dict[str, List[EntitySnapshot]] = {}
        for entity in shown:
            by_domain.setdefault(entity.domain, []).append(entity)

        lines = ["ENTITIES:"]
        for domain, members in by_domain.items():
            lines.append(f"{domain.upper()} ({len(members)}):")
            for entity in members:
                state = entity.state
                if entity.unit_of_measurement:
                    state = f"{state} {entity.unit_of_measurement}"
                lines.append(f"  - {entity.friendly_name} ({entity.entity_id}): {state}")

        hidden = len(entities) - len(shown)
        if hidden > 0:
            lines.append(f"... and {hidden} more")
        return "\n".join(lines)

    def build(
        self,
        utterance: str,
        entities: Sequence[EntitySnapshot],
        capabilities: CapabilitySummary,
        patterns: Sequence[LearnedPattern],
        energy: Optional[EnergyInsights] = None,
        suggestions: Sequence[EnergySuggestion] = (),
    ) -> str:
        """Assemble the context blob. See module docstring for the layout."""
        sections = []

        if self.config.instructions:
            sections.append(
                "USER INSTRUCTIONS:\n"
                f"{self.config.instructions}\n\n"
                "IMPORTANT: Always follow the user instructions above when responding."
            )

        sections.append(ASSISTANT_INTRO)
        sections.append(ACTION_FORMAT_BLOCK)

        if entities:
            sections.append(self.render_entities(entities))

        system_line = f"SYSTEM: {capabilities.total_entities} entities"
        if capabilities.features:
            system_line += f" | Features: {', '.join(capabilities.features)}"
        sections.append(system_line)

        if energy is not None:
            energy_lines = [
                "ENERGY:",
                f"- Daily avg: {energy.daily_average:.0f}W",
                f"- Trend: {energy.trend}",
            ]
            if energy.solar_production > 0:
                energy_lines.append(f"- Solar: {energy.solar_production:.0f}W")
            sections.append("\n".join(energy_lines))

        if suggestions:
            suggestion_lines = ["SUGGESTIONS:"]
            for suggestion in list(suggestions)[:MAX_RENDERED_SUGGESTIONS]:
                suggestion_lines.append(f"- {suggestion.title}: {suggestion.description}")
            sections.append("\n".join(suggestion_lines))

        relevant = self.select_patterns(utterance, patterns)
        if relevant:
            sections.append("\n".join(["LEARNED PATTERNS:"] + [self.render_pattern(p) for p in relevant]))

        return self._fit("\n\n".join(sections), RULES_BLOCK)

    def _fit(self, head: str, rules: str) -> str:
        """Join head and rules, cutting the head so the total stays under max_context_chars."""
        joined = f"{head}\n\n{rules}"
        if len(joined) <= self.config.max_context_chars:
            return joined

        budget = self.config.max_context_chars - len(rules) - len(TRUNCATION_MARKER) - 2
        if budget <= 0:
            return rules
        return f"{head[:budget].rstrip()}{TRUNCATION_MARKER}\n\n{rules}"
