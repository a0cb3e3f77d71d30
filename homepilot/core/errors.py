"""
Error taxonomy shared by the hub client, NL backends and storage layer.

Propagation policy:
- Inside the Command Interpreter everything is recovered into a
  conversational reply.
- Inside the State Synchronizer everything is recorded into the stream's
  Sync Status row and retried on the next tick.
- Learning and history writes log PersistenceError and move on.
"""

from typing import Any, Optional


class HomePilotError(Exception):
    """Base exception for all HomePilot errors."""
    pass


class ConfigurationError(HomePilotError):
    """Missing credentials or URL. Fails fast, never retried."""
    pass


class UnavailableError(HomePilotError):
    """Transient network or hub failure. Retried by the next scheduled tick."""

    def __init__(self, message: str, status_code: Optional[int] = None, response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class BackendError(HomePilotError):
    """Malformed or error response from an NL provider."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class ActionExecutionError(HomePilotError):
    """A single device action failed. Sibling actions still run."""

    def __init__(
        self,
        message: str,
        domain: Optional[str] = None,
        service: Optional[str] = None,
        entity_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.domain = domain
        self.service = service
        self.entity_id = entity_id


class PersistenceError(HomePilotError):
    """Pattern, history or mirror write failed. Logged, never shown to the user."""
    pass
