"""
Base contracts for hub integrations.

The core talks to the outside world through two narrow interfaces:

- EntitySource: "give me every entity and its current state"
  (implemented by the hub client and by the local mirror)
- ActionExecutor: "call this service on this entity"
  (implemented by the hub client)

Keeping them abstract lets tests hand in fakes and lets the Interpreter
read the mirror instead of the hub.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


def split_entity_id(entity_id: str) -> tuple:
    """Split "light.living_room" into ("light", "living_room")."""
    domain, _, object_id = entity_id.partition(".")
    return domain, object_id


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp from the hub, tolerating junk."""
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass
class EntitySnapshot:
    """
    Point-in-time view of one hub entity.

    Attributes:
        entity_id: "<domain>.<qualifier>"
        friendly_name: display name (falls back to entity_id)
        state: current state as reported by the hub
        attributes: numeric/unit and other attributes
        last_changed: when the state last changed on the hub
        last_updated: when the hub last touched the entity
    """
    entity_id: str
    state: str
    friendly_name: str = ""
    attributes: Dict[str, Any] = field(default_factory=dict)
    last_changed: Optional[datetime] = None
    last_updated: Optional[datetime] = None

    def __post_init__(self):
        if not self.friendly_name:
            self.friendly_name = self.attributes.get("friendly_name") or self.entity_id

    @property
    def domain(self) -> str:
        return split_entity_id(self.entity_id)[0]

    @property
    def object_id(self) -> str:
        return split_entity_id(self.entity_id)[1]

    @property
    def unit_of_measurement(self) -> Optional[str]:
        return self.attributes.get("unit_of_measurement")

    @property
    def device_class(self) -> Optional[str]:
        return self.attributes.get("device_class")

    @classmethod
    def from_hub_state(cls, data: Dict[str, Any]) -> "EntitySnapshot":
        """Build from one element of the hub's /api/states payload."""
        attributes = data.get("attributes") or {}
        return cls(
            entity_id=data["entity_id"],
            state=str(data.get("state", "unknown")),
            friendly_name=attributes.get("friendly_name") or data["entity_id"],
            attributes=attributes,
            last_changed=parse_timestamp(data.get("last_changed")),
            last_updated=parse_timestamp(data.get("last_updated")),
        )


class EntitySource(ABC):
    """Anything that can list current entity snapshots."""

    @abstractmethod
    async def list_entities(self) -> List[EntitySnapshot]:
        """
        Return every known entity.

        Raises:
            UnavailableError: the source could not be reached
        """
        pass


class ActionExecutor(ABC):
    """Anything that can execute a device service call."""

    @abstractmethod
    async def call_service(
        self,
        domain: str,
        service: str,
        entity_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Execute `<domain>.<service>` against `entity_id`.

        Raises:
            ActionExecutionError: the call failed
        """
        pass
