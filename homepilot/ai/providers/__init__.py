"""
AI Providers Module - Unified clients for the supported NL backends.

- OpenAI (GPT models)
- Anthropic (Claude)
- Google Gemini
- xAI Grok (OpenAI-compatible API)
- LM Studio (local OpenAI-compatible server)

Each provider has the same interface, making them interchangeable:
    response = await provider.complete(system_prompt, user_text)

build_provider(settings) picks exactly one at startup.
"""

from homepilot.ai.providers.anthropic_provider import AnthropicProvider
from homepilot.ai.providers.base import AIProvider, AIResponse, ProviderType, TokenUsage
from homepilot.ai.providers.factory import build_provider
from homepilot.ai.providers.gemini import GeminiProvider
from homepilot.ai.providers.openai_provider import (
    GrokProvider,
    LMStudioProvider,
    OpenAIProvider,
)

__all__ = [
    "AIProvider",
    "AIResponse",
    "ProviderType",
    "TokenUsage",
    "build_provider",
    "OpenAIProvider",
    "AnthropicProvider",
    "GeminiProvider",
    "GrokProvider",
    "LMStudioProvider",
]
