"""Home Assistant hub integration."""

from homepilot.environments.home_assistant.client import HomeAssistantClient

__all__ = ["HomeAssistantClient"]
