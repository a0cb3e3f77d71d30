"""
Provider factory - picks the one NL backend the app will use.

Called once at startup. The returned provider is injected into the
Command Interpreter; nothing else decides which backend answers.
"""

import logging

from homepilot.ai.providers.anthropic_provider import AnthropicProvider
from homepilot.ai.providers.base import AIProvider
from homepilot.ai.providers.gemini import GeminiProvider
from homepilot.ai.providers.openai_provider import (
    GrokProvider,
    LMStudioProvider,
    OpenAIProvider,
)
from homepilot.core.config import Settings
from homepilot.core.errors import ConfigurationError

logger = logging.getLogger("homepilot.ai.providers")

# "claude" is accepted as an alias for the Anthropic backend
PROVIDER_ALIASES = {"claude": "anthropic"}


def build_provider(settings: Settings) -> AIProvider:
    """
    Build the provider named by settings.AI_PROVIDER.

    Raises:
        ConfigurationError: unknown provider or missing API key
    """
    name = settings.AI_PROVIDER.strip().lower()
    name = PROVIDER_ALIASES.get(name, name)
    timeout = settings.AI_REQUEST_TIMEOUT

    if name == "lmstudio":
        provider = LMStudioProvider(
            url=settings.LMSTUDIO_URL, model=settings.LMSTUDIO_MODEL, timeout=timeout
        )
    elif name == "openai":
        _require(settings.OPENAI_API_KEY, "OPENAI_API_KEY", name)
        provider = OpenAIProvider(
            api_key=settings.OPENAI_API_KEY, model=settings.OPENAI_MODEL, timeout=timeout
        )
    elif name == "anthropic":
        _require(settings.ANTHROPIC_API_KEY, "ANTHROPIC_API_KEY", name)
        provider = AnthropicProvider(
            api_key=settings.ANTHROPIC_API_KEY, model=settings.ANTHROPIC_MODEL, timeout=timeout
        )
    elif name == "gemini":
        _require(settings.GEMINI_API_KEY, "GEMINI_API_KEY", name)
        provider = GeminiProvider(
            api_key=settings.GEMINI_API_KEY, model=settings.GEMINI_MODEL, timeout=timeout
        )
    elif name == "grok":
        _require(settings.GROK_API_KEY, "GROK_API_KEY", name)
        provider = GrokProvider(
            api_key=settings.GROK_API_KEY, model=settings.GROK_MODEL, timeout=timeout
        )
    else:
        raise ConfigurationError(f"Unknown AI provider: {settings.AI_PROVIDER}")

    logger.info(f"Using AI provider: {provider.provider_type.value} ({provider.model})")
    return provider


def _require(value: str, setting: str, provider: str) -> None:
    if not value:
        raise ConfigurationError(f"{setting} is required for the {provider} provider")
