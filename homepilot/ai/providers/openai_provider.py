"""
OpenAI-compatible providers - OpenAI, Grok and LM Studio.

All three speak the OpenAI chat completions API, so they share one
implementation and differ only in base URL, key handling and model:

- OpenAIProvider: api.openai.com, needs OPENAI_API_KEY
- GrokProvider: api.x.ai/v1, needs GROK_API_KEY
- LMStudioProvider: a local server at {LMSTUDIO_URL}/v1, no key needed

API Documentation: https://platform.openai.com/docs/api-reference
"""

import logging
import time
from typing import Optional

from openai import AsyncOpenAI

from homepilot.ai.providers.base import (
    AIProvider,
    AIResponse,
    ProviderType,
    TokenUsage
)

logger = logging.getLogger("homepilot.ai.openai")

GROK_BASE_URL = "https://api.x.ai/v1"

# LM Studio ignores the key, but the SDK requires one
LMSTUDIO_PLACEHOLDER_KEY = "lm-studio"


class OpenAIProvider(AIProvider):
    """
    OpenAI GPT provider implementation.

    Usage:
        provider = OpenAIProvider(api_key="sk-...", model="gpt-4o-mini")
        response = await provider.generate("Turn on the porch light")
    """

    provider_type = ProviderType.OPENAI

    def __init__(
        self,
        api_key: str = "",
        model: str = "gpt-4o-mini",
        timeout: float = 30.0,
        base_url: Optional[str] = None,
    ):
        """
        Initialize the provider.

        Args:
            api_key: API key; without one the provider reports itself unavailable
            model: Model name
            timeout: SDK request timeout in seconds
            base_url: Override for OpenAI-compatible servers
        """
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self.base_url = base_url

        if self.api_key:
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=base_url, timeout=timeout)
            logger.info(f"{self.provider_type.value} provider initialized with model: {self.model}")
        else:
            self._client = None
            logger.warning(f"{self.provider_type.value} API key not configured - provider unavailable")

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
        **kwargs
    ) -> AIResponse:
        """
        Generate a response through the chat completions API.

        Args:
            prompt: The user's message
            system_prompt: Optional system instructions
            temperature: Creativity (0-1)
            max_tokens: Maximum response length

        Returns:
            AIResponse with the generated content
        """
        start_time = time.time()

        if not self._client:
            return self._create_error_response(
                error=f"{self.provider_type.value} API key not configured",
                model=self.model,
                latency_ms=self._measure_latency(start_time)
            )

        try:
            messages = []
            if system_prompt:
                messages.append({"role": "system", "content": system_prompt})
            messages.append({"role": "user", "content": prompt})

            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )

            latency_ms = self._measure_latency(start_time)

            if not response.choices:
                return self._create_error_response(
                    error="Response contained no choices",
                    model=self.model,
                    latency_ms=latency_ms
                )

            content = response.choices[0].message.content or ""

            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens if response.usage else 0,
                completion_tokens=response.usage.completion_tokens if response.usage else 0,
            )

            logger.info(
                f"{self.provider_type.value} request completed in {latency_ms:.0f}ms, "
                f"tokens: {usage.total_tokens}"
            )

            return AIResponse(
                content=content,
                provider=self.provider_type,
                model=self.model,
                usage=usage,
                latency_ms=latency_ms,
                success=True,
                raw_response=response,
            )

        except Exception as e:
            latency_ms = self._measure_latency(start_time)
            logger.error(f"{self.provider_type.value} generation failed: {e}")
            return self._create_error_response(
                error=str(e),
                model=self.model,
                latency_ms=latency_ms
            )


class GrokProvider(OpenAIProvider):
    """xAI Grok through its OpenAI-compatible endpoint."""

    provider_type = ProviderType.GROK

    def __init__(self, api_key: str = "", model: str = "grok-beta", timeout: float = 30.0):
        super().__init__(api_key=api_key, model=model, timeout=timeout, base_url=GROK_BASE_URL)


class LMStudioProvider(OpenAIProvider):
    """A local LM Studio server. Always configured; failures show up per request."""

    provider_type = ProviderType.LMSTUDIO

    def __init__(
        self,
        url: str = "http://localhost:1234",
        model: str = "local-model",
        timeout: float = 30.0,
    ):
        self.url = url.rstrip("/")
        super().__init__(
            api_key=LMSTUDIO_PLACEHOLDER_KEY,
            model=model,
            timeout=timeout,
            base_url=f"{self.url}/v1",
        )
