"""
Anthropic Provider - Claude client.

Claude has no "system" message role; the system prompt goes in the
dedicated `system` request field and the reply arrives as a list of
content blocks.

API Documentation: https://docs.anthropic.com/en/api
"""

import logging
import time
from typing import Optional

from anthropic import AsyncAnthropic

from homepilot.ai.providers.base import (
    AIProvider,
    AIResponse,
    ProviderType,
    TokenUsage
)

logger = logging.getLogger("homepilot.ai.anthropic")


class AnthropicProvider(AIProvider):
    """
    Anthropic Claude provider implementation.

    Usage:
        provider = AnthropicProvider(api_key="sk-ant-...")
        response = await provider.generate("Which lights are on?")
    """

    provider_type = ProviderType.ANTHROPIC

    def __init__(
        self,
        api_key: str = "",
        model: str = "claude-3-haiku-20240307",
        timeout: float = 30.0,
    ):
        self.model = model
        self.api_key = api_key
        self.timeout = timeout

        if self.api_key:
            self._client = AsyncAnthropic(api_key=self.api_key, timeout=timeout)
            logger.info(f"Anthropic provider initialized with model: {self.model}")
        else:
            self._client = None
            logger.warning("Anthropic API key not configured - provider unavailable")

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
        **kwargs
    ) -> AIResponse:
        """
        Generate a response using Claude.

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
                error="Anthropic API key not configured",
                model=self.model,
                latency_ms=self._measure_latency(start_time)
            )

        try:
            request_params = {
                "model": self.model,
                "max_tokens": max_tokens,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": temperature,
            }

            if system_prompt:
                request_params["system"] = system_prompt

            response = await self._client.messages.create(**request_params)

            latency_ms = self._measure_latency(start_time)

            # Claude returns a list of content blocks
            content = ""
            if response.content:
                for block in response.content:
                    if hasattr(block, 'text'):
                        content += block.text

            usage = TokenUsage(
                prompt_tokens=response.usage.input_tokens if response.usage else 0,
                completion_tokens=response.usage.output_tokens if response.usage else 0,
            )

            logger.info(f"Anthropic request completed in {latency_ms:.0f}ms, tokens: {usage.total_tokens}")

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
            logger.error(f"Anthropic generation failed: {e}")
            return self._create_error_response(
                error=str(e),
                model=self.model,
                latency_ms=latency_ms
            )
