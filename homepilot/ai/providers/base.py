"""
Base AI Provider - Abstract interface for all NL backends.

This module defines the contract that all AI providers must follow.
It ensures consistent behavior regardless of which provider is used.

Design Pattern: Strategy Pattern
================================
The base class defines the interface, and each provider implements it.
The provider is chosen once at startup (see factory.build_provider) and
injected into the Command Interpreter, so swapping backends needs no
code changes.

Two entry points:
- generate(): never raises, errors are captured in AIResponse.error
- complete(): raises BackendError on any failure or empty reply; this is
  what the Command Interpreter calls

Example:
    provider = OpenAIProvider(api_key="sk-...")
    response = await provider.complete(system_prompt, "Turn on the kitchen light")
    print(response.content)
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from homepilot.core.errors import BackendError

logger = logging.getLogger("homepilot.ai")


class ProviderType(str, Enum):
    """Enum of supported AI providers."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    GROK = "grok"
    LMSTUDIO = "lmstudio"


@dataclass
class TokenUsage:
    """
    Token usage statistics for an AI request.

    Used for:
    - Cost tracking (tokens = money)
    - Rate limiting awareness
    """
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __post_init__(self):
        """Calculate total if not provided."""
        if self.total_tokens == 0:
            self.total_tokens = self.prompt_tokens + self.completion_tokens


@dataclass
class AIResponse:
    """
    Standardized response from any AI provider.

    Attributes:
        content: The generated text response
        provider: Which provider generated this response
        model: The specific model used
        usage: Token usage statistics
        latency_ms: How long the request took
        success: Whether the request succeeded
        error: Error message if failed
        raw_response: Original provider response (for debugging)
        metadata: Additional provider-specific data
        created_at: Timestamp of the response
    """
    content: str
    provider: ProviderType
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    latency_ms: float = 0.0
    success: bool = True
    error: Optional[str] = None
    raw_response: Optional[Any] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "content": self.content[:100] + "..." if len(self.content) > 100 else self.content,
            "provider": self.provider.value,
            "model": self.model,
            "tokens": {
                "prompt": self.usage.prompt_tokens,
                "completion": self.usage.completion_tokens,
                "total": self.usage.total_tokens,
            },
            "latency_ms": self.latency_ms,
            "success": self.success,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
        }


class AIProvider(ABC):
    """
    Abstract base class for AI providers.

    Responsibilities:
    - Generate text responses from prompts
    - Handle errors gracefully
    - Track token usage and latency

    Usage:
        class MyProvider(AIProvider):
            async def generate(self, prompt, **kwargs):
                # Implementation here
                pass
    """

    provider_type: ProviderType
    model: str

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
        **kwargs
    ) -> AIResponse:
        """
        Generate a response from the AI model.

        Args:
            prompt: The user's message/query
            system_prompt: Optional system instructions for the model
            temperature: Creativity level (0=deterministic, 1=creative)
            max_tokens: Maximum tokens in the response
            **kwargs: Provider-specific options

        Returns:
            AIResponse with the generated content

        Raises:
            This method should NOT raise exceptions.
            Errors are captured in AIResponse.error
        """
        pass

    async def complete(
        self,
        system_prompt: str,
        user_text: str,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> AIResponse:
        """
        Generate a reply and insist that it is usable.

        Raises:
            BackendError: the provider failed or returned an empty reply
        """
        response = await self.generate(
            prompt=user_text,
            system_prompt=system_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        if not response.success:
            raise BackendError(response.error or "Unknown provider error", provider=self.provider_type.value)
        if not (response.content or "").strip():
            raise BackendError("Provider returned an empty reply", provider=self.provider_type.value)
        return response

    def _measure_latency(self, start_time: float) -> float:
        """Calculate latency in milliseconds."""
        return (time.time() - start_time) * 1000

    def _create_error_response(
        self,
        error: str,
        model: str,
        latency_ms: float = 0.0
    ) -> AIResponse:
        """
        Create a standardized error response.

        Used when a provider fails to ensure consistent error handling.
        """
        logger.error(f"AI Provider Error [{self.provider_type.value}]: {error}")
        return AIResponse(
            content="",
            provider=self.provider_type,
            model=model,
            latency_ms=latency_ms,
            success=False,
            error=error,
        )
