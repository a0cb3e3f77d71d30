"""
Home Assistant REST client - entity source and action executor for the hub.

Endpoints used:
- GET  /api/states                       → every entity with state + attributes
- POST /api/services/<domain>/<service>  → execute a service call

API Reference: https://developers.home-assistant.io/docs/api/rest/

Usage Example:
==============
    client = HomeAssistantClient(url="http://homeassistant.local:8123", token="...")

    entities = await client.list_entities()
    await client.call_service("light", "turn_on", "light.living_room", {"brightness": 200})
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from homepilot.core.errors import (
    ActionExecutionError,
    ConfigurationError,
    UnavailableError,
)
from homepilot.environments.base import ActionExecutor, EntitySnapshot, EntitySource

logger = logging.getLogger("homepilot.environments.home_assistant")


class HomeAssistantClient(EntitySource, ActionExecutor):
    """
    Thin async client over the Home Assistant REST API.

    Attributes:
        url: hub base URL, without the /api suffix
        token: long-lived access token
        timeout: per-request timeout in seconds
        allowed_services: "<domain>.<service>" strings the assistant may call;
            None allows everything
    """

    def __init__(
        self,
        url: str,
        token: str,
        timeout: float = 30.0,
        allowed_services: Optional[Iterable[str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = (url or "").rstrip("/")
        self.token = token or ""
        self.timeout = timeout
        self.allowed_services = set(allowed_services) if allowed_services is not None else None
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.token)

    # -------------------------------------------------------------------------
    # HTTP PLUMBING
    # -------------------------------------------------------------------------

    def _get_headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }

    def _ensure_configured(self) -> None:
        if not self.is_configured:
            raise ConfigurationError("Home Assistant URL or token not configured")

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        json_body: Optional[dict] = None,
    ) -> Any:
        """
        Make an authenticated request to the hub.

        Raises:
            ConfigurationError: URL/token missing or rejected (401/403)
            UnavailableError: network failure, timeout or non-2xx status
        """
        self._ensure_configured()

        async with httpx.AsyncClient(
            base_url=self.url,
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            try:
                response = await client.request(
                    method=method,
                    url=endpoint,
                    headers=self._get_headers(),
                    json=json_body,
                )
            except httpx.TimeoutException as e:
                logger.error(f"Home Assistant request timed out: {endpoint}")
                raise UnavailableError(f"Home Assistant timed out: {e}")
            except httpx.RequestError as e:
                logger.error(f"Network error talking to Home Assistant: {e}")
                raise UnavailableError(f"Network error: {e}")

        if response.status_code in (401, 403):
            logger.error("Home Assistant rejected the access token")
            raise ConfigurationError(
                f"Home Assistant rejected the access token (HTTP {response.status_code})"
            )

        if response.status_code >= 400:
            logger.error(f"Home Assistant API error: {response.status_code} - {response.text[:200]}")
            raise UnavailableError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
                response=response.text,
            )

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            # Usually a wrong URL, a proxy login page or HA not running
            raise UnavailableError(
                "Invalid response format - expected JSON from Home Assistant. "
                "Check the Home Assistant URL.",
                status_code=response.status_code,
                response=response.text[:200],
            )

        return response.json()

    # -------------------------------------------------------------------------
    # ENTITY SOURCE
    # -------------------------------------------------------------------------

    async def list_entities(self) -> List[EntitySnapshot]:
        """Fetch every entity's current state from the hub."""
        states = await self._make_request("GET", "/api/states")

        if not isinstance(states, list):
            raise UnavailableError("Unexpected /api/states payload")

        entities = []
        for state in states:
            if not isinstance(state, dict) or "entity_id" not in state:
                continue
            entities.append(EntitySnapshot.from_hub_state(state))

        logger.debug(f"Fetched {len(entities)} entities from Home Assistant")
        return entities

    # -------------------------------------------------------------------------
    # ACTION EXECUTOR
    # -------------------------------------------------------------------------

    async def call_service(
        self,
        domain: str,
        service: str,
        entity_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Execute a service call on the hub.

        Every failure, including a refused service, surfaces as
        ActionExecutionError so the caller can report it per action.
        """
        service_call = f"{domain}.{service}"

        if self.allowed_services is not None and service_call not in self.allowed_services:
            raise ActionExecutionError(
                f"Service not allowed: {service_call}",
                domain=domain,
                service=service,
                entity_id=entity_id,
            )

        service_data: Dict[str, Any] = {}
        if entity_id:
            service_data["entity_id"] = entity_id
        if data:
            service_data.update(data)

        try:
            result = await self._make_request(
                "POST", f"/api/services/{domain}/{service}", json_body=service_data
            )
        except (ConfigurationError, UnavailableError) as e:
            raise ActionExecutionError(
                str(e), domain=domain, service=service, entity_id=entity_id
            ) from e

        logger.info(f"Called {service_call} on {entity_id or '(no target)'}")
        return {
            "success": True,
            "service": service_call,
            "entity_id": entity_id,
            "data": data,
            "result": result,
        }
