"""
Action-token grammar - extracts device actions from a backend's free text.

The NL backend is told to answer in plain language and, when it wants a
device to do something, to inline one or more tokens of the shape:

    ACTION: <domain>.<service> <entity_id>[ <json-object>]

Examples:
=========
    "Turning on the light. ACTION: light.turn_on light.upstairs_6"
    "Warming up. ACTION: climate.set_temperature climate.bedroom {\"temperature\": 22}"

Parsing rules:
==============
- Matching is case-insensitive and finds every token, in emission order.
- Every token is removed from the visible reply; the rest is trimmed.
- A JSON suffix that does not parse to an object is dropped and the
  action becomes paramless. Other tokens are unaffected.
- The suffix may not contain "}", so nested objects and arrays are not
  supported. Prompts only ever ask for flat objects.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger("homepilot.ai.actions.grammar")

ACTION_PATTERN = re.compile(
    r"ACTION:\s+(\w+)\.(\w+)\s+([\w.]+)(?:\s+(\{[^}]+\}))?",
    re.IGNORECASE | re.ASCII,
)


@dataclass
class ActionCommand:
    """
    One device action requested by the backend. Never persisted.

    Attributes:
        domain: hub domain, e.g. "light"
        service: service/verb within the domain, e.g. "turn_on"
        entity_id: target entity, e.g. "light.living_room"
        data: optional flat parameter object
        raw: the token text as it appeared in the reply
    """
    domain: str
    service: str
    entity_id: str
    data: Optional[Dict[str, Any]] = None
    raw: str = ""

    @property
    def service_call(self) -> str:
        return f"{self.domain}.{self.service}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "service": self.service,
            "entity_id": self.entity_id,
            "data": self.data,
        }


@dataclass
class ParsedReply:
    """Visible reply text plus the actions extracted from it."""
    text: str
    actions: List[ActionCommand] = field(default_factory=list)


def _parse_params(suffix: Optional[str]) -> Optional[Dict[str, Any]]:
    if not suffix:
        return None
    try:
        params = json.loads(suffix)
    except json.JSONDecodeError:
        logger.warning(f"Dropping unparseable action data: {suffix}")
        return None
    if not isinstance(params, dict):
        logger.warning(f"Dropping non-object action data: {suffix}")
        return None
    return params


def parse_actions(text: str) -> ParsedReply:
    """
    Split a backend reply into visible text and action commands.

    The visible text may be empty; the caller decides what to show then.
    """
    text = text or ""
    actions = [
        ActionCommand(
            domain=match.group(1),
            service=match.group(2),
            entity_id=match.group(3),
            data=_parse_params(match.group(4)),
            raw=match.group(0),
        )
        for match in ACTION_PATTERN.finditer(text)
    ]
    visible = ACTION_PATTERN.sub("", text).strip()

    if actions:
        logger.debug(f"Parsed {len(actions)} action(s): {[a.service_call for a in actions]}")

    return ParsedReply(text=visible, actions=actions)


def format_action(domain: str, service: str, entity_id: str, data: Optional[Dict[str, Any]] = None) -> str:
    """Render an action token in the grammar the parser accepts."""
    token = f"ACTION: {domain}.{service} {entity_id}"
    if data:
        token += f" {json.dumps(data)}"
    return token
