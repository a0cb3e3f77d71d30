"""
Dependencies module - service wiring and reusable FastAPI dependencies.

Every core service is constructed exactly once, at startup, from explicit
configuration and a session factory (see build_services). The resulting
ServiceContainer lives on `app.state.services`; route handlers pull the
piece they need through the small get_* dependencies below.

Tests build their own container (fake hub, fake provider, in-memory
database) and hand it to create_app(), so nothing here reads globals.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import HTTPException, Request, status
from sqlalchemy.orm import Session

from homepilot.ai.providers import AIProvider, build_provider
from homepilot.core.config import AssistantConfig, Settings
from homepilot.core.errors import ConfigurationError
from homepilot.environments.home_assistant import HomeAssistantClient
from homepilot.services.energy_insights import EnergyInsightService
from homepilot.services.entity_mirror import EntityMirror, HistoryStore, SyncStatusStore
from homepilot.services.interpreter import CommandInterpreter
from homepilot.services.learning import LearningQueue
from homepilot.services.pattern_store import PatternStore
from homepilot.services.sync_service import StateSynchronizer

logger = logging.getLogger("homepilot.deps")


# ---------------------------------------------------------------------------
# SERVICE CONTAINER
# ---------------------------------------------------------------------------

@dataclass
class ServiceContainer:
    """
    Everything the HTTP layer talks to.

    `interpreter` is None when no NL backend could be configured; the
    command endpoint then answers 503 while the rest of the API keeps
    working.
    """
    mirror: EntityMirror
    history: HistoryStore
    sync_status: SyncStatusStore
    patterns: PatternStore
    energy: EnergyInsightService
    learning: LearningQueue
    synchronizer: StateSynchronizer
    interpreter: Optional[CommandInterpreter] = None
    provider_error: Optional[str] = None

    async def shutdown(self) -> None:
        """Stop background work: sync loops first, then the learning worker."""
        await self.synchronizer.shutdown()
        await self.learning.stop()


def build_services(
    settings: Settings,
    session_factory: Callable[[], Session],
    hub: Optional[HomeAssistantClient] = None,
    provider: Optional[AIProvider] = None,
) -> ServiceContainer:
    """
    Construct every service from settings.

    Args:
        settings: application settings
        session_factory: callable returning a new SQLAlchemy session
        hub: hub client override (defaults to a HomeAssistantClient from settings)
        provider: NL backend override (defaults to build_provider(settings))
    """
    mirror = EntityMirror(session_factory)
    history = HistoryStore(session_factory)
    sync_status = SyncStatusStore(session_factory)
    patterns = PatternStore(session_factory)
    energy = EnergyInsightService(mirror, history, patterns)
    learning = LearningQueue(patterns)

    if hub is None:
        hub = HomeAssistantClient(
            url=settings.HOME_ASSISTANT_URL,
            token=settings.HOME_ASSISTANT_TOKEN,
            timeout=settings.HA_REQUEST_TIMEOUT,
            allowed_services=settings.ALLOWED_SERVICES,
        )
    synchronizer = StateSynchronizer(hub, mirror, history, sync_status, energy=energy)

    provider_error = None
    if provider is None:
        try:
            provider = build_provider(settings)
        except ConfigurationError as e:
            logger.error(f"NL backend unavailable: {e}")
            provider_error = str(e)

    interpreter = None
    if provider is not None:
        interpreter = CommandInterpreter(
            provider=provider,
            executor=hub,
            entity_source=mirror,
            pattern_store=patterns,
            learning_queue=learning,
            config=AssistantConfig.from_settings(settings),
            energy=energy,
        )

    return ServiceContainer(
        mirror=mirror,
        history=history,
        sync_status=sync_status,
        patterns=patterns,
        energy=energy,
        learning=learning,
        synchronizer=synchronizer,
        interpreter=interpreter,
        provider_error=provider_error,
    )


# ---------------------------------------------------------------------------
# ROUTE DEPENDENCIES
# ---------------------------------------------------------------------------

def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_interpreter(request: Request) -> CommandInterpreter:
    """
    The Command Interpreter, or 503 when no backend is configured.

    Raises:
        503 Service Unavailable: AI_PROVIDER is missing its key or unknown
    """
    services = get_services(request)
    if services.interpreter is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Assistant backend is not configured: {services.provider_error}",
        )
    return services.interpreter


def get_synchronizer(request: Request) -> StateSynchronizer:
    return get_services(request).synchronizer


def get_mirror(request: Request) -> EntityMirror:
    return get_services(request).mirror


def get_history(request: Request) -> HistoryStore:
    return get_services(request).history


def get_pattern_store(request: Request) -> PatternStore:
    return get_services(request).patterns


def get_energy(request: Request) -> EnergyInsightService:
    return get_services(request).energy
