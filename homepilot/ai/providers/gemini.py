"""
Gemini Provider - Google's GenAI SDK.

Uses the async surface (client.aio) so a slow reply never blocks the
event loop shared with the sync loops.
"""

import logging
import time
from typing import Optional

from google import genai
from google.genai import types

from homepilot.ai.providers.base import (
    AIProvider,
    AIResponse,
    ProviderType,
    TokenUsage
)

logger = logging.getLogger("homepilot.ai.gemini")


class GeminiProvider(AIProvider):
    provider_type = ProviderType.GEMINI

    def __init__(self, api_key: str = "", model: str = "gemini-2.5-flash", timeout: float = 30.0):
        self.model = model
        self.api_key = api_key
        self.timeout = timeout

        if self.api_key:
            # HttpOptions.timeout is in milliseconds
            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=int(timeout * 1000)),
            )
            logger.info(f"Gemini provider initialized with model: {self.model}")
        else:
            self._client = None
            logger.warning("Gemini API key not configured")

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
        **kwargs
    ) -> AIResponse:
        start_time = time.time()

        if not self._client:
            return self._error("API key missing", start_time)

        try:
            config = types.GenerateContentConfig(
                temperature=temperature,
                max_output_tokens=max_tokens,
                system_instruction=system_prompt,
            )

            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=config
            )

            latency_ms = self._measure_latency(start_time)
            usage = self._extract_usage(response)

            logger.info(f"Gemini request completed in {latency_ms:.0f}ms, tokens: {usage.total_tokens}")

            return AIResponse(
                content=response.text or "",
                provider=self.provider_type,
                model=self.model,
                usage=usage,
                latency_ms=latency_ms,
                success=True,
                raw_response=response,
            )

        except Exception as e:
            logger.error(f"Gemini generation failed: {e}")
            return self._error(str(e), start_time)

    # --- PRIVATE HELPERS ---

    def _extract_usage(self, response) -> TokenUsage:
        # usage_metadata can be None when the API reports no usage
        metadata = response.usage_metadata
        prompt_t = (metadata.prompt_token_count or 0) if metadata else 0
        comp_t = (metadata.candidates_token_count or 0) if metadata else 0
        return TokenUsage(prompt_tokens=prompt_t, completion_tokens=comp_t)

    def _error(self, msg: str, start_time: float) -> AIResponse:
        return self._create_error_response(
            error=msg,
            model=self.model,
            latency_ms=self._measure_latency(start_time)
        )
