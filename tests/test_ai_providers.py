"""
Tests for AI Providers - base classes, concrete providers and the factory.

This module tests:
- TokenUsage and AIResponse dataclasses
- Provider type enum
- complete(): BackendError on failed or empty replies
- OpenAI / Grok / LM Studio, Anthropic and Gemini request shapes (mocked SDKs)
- build_provider() selection and configuration errors
- AIMetrics cost estimation

We mock LLM calls to ensure tests are:
- Fast (no network calls)
- Reliable (no API flakiness)
- Free (no token costs)
"""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from homepilot.ai.monitoring.metrics import AIMetrics
from homepilot.ai.providers import (
    AnthropicProvider,
    GeminiProvider,
    GrokProvider,
    LMStudioProvider,
    OpenAIProvider,
    build_provider,
)
from homepilot.ai.providers.base import AIResponse, ProviderType, TokenUsage
from homepilot.core.config import Settings
from homepilot.core.errors import BackendError, ConfigurationError

from tests.fakes import ScriptedProvider


class TestTokenUsage:
    """Tests for TokenUsage dataclass."""

    def test_auto_calculate_total(self):
        """Test that total is auto-calculated if not provided."""
        usage = TokenUsage(prompt_tokens=100, completion_tokens=50)

        assert usage.total_tokens == 150

    def test_default_values(self):
        usage = TokenUsage()

        assert usage.prompt_tokens == 0
        assert usage.completion_tokens == 0
        assert usage.total_tokens == 0

    def test_total_overrides_calculation(self):
        """Test that explicit total is not recalculated when it's non-zero."""
        usage = TokenUsage(prompt_tokens=100, completion_tokens=50, total_tokens=200)

        assert usage.total_tokens == 200


class TestAIResponse:
    """Tests for AIResponse dataclass."""

    def test_create_success_response(self):
        response = AIResponse(
            content="Sure! ACTION: light.turn_on light.living_room",
            provider=ProviderType.LMSTUDIO,
            model="local-model",
        )

        assert response.success is True
        assert response.error is None

    def test_to_dict(self):
        response = AIResponse(
            content="Test content",
            provider=ProviderType.GEMINI,
            model="gemini-2.5-flash",
            usage=TokenUsage(prompt_tokens=100, completion_tokens=50),
            latency_ms=200.0,
        )

        result = response.to_dict()

        assert result["provider"] == "gemini"
        assert result["tokens"] == {"prompt": 100, "completion": 50, "total": 150}
        assert result["latency_ms"] == 200.0
        assert result["success"] is True

    def test_to_dict_truncates_long_content(self):
        response = AIResponse(content="x" * 200, provider=ProviderType.OPENAI, model="gpt-4o-mini")

        result = response.to_dict()

        assert len(result["content"]) == 103  # 100 chars + "..."
        assert result["content"].endswith("...")

    def test_created_at_timestamp(self):
        before = datetime.now(timezone.utc)
        response = AIResponse(content="Test", provider=ProviderType.GROK, model="grok-beta")
        after = datetime.now(timezone.utc)

        assert before <= response.created_at <= after


class TestProviderType:
    """Tests for ProviderType enum."""

    def test_all_providers_exist(self):
        assert {p.value for p in ProviderType} == {"openai", "anthropic", "gemini", "grok", "lmstudio"}

    def test_provider_is_string_enum(self):
        assert ProviderType("lmstudio") is ProviderType.LMSTUDIO
        assert ProviderType.OPENAI == "openai"


class TestComplete:
    """complete() is the NL backend contract used by the interpreter."""

    @pytest.mark.asyncio
    async def test_returns_successful_response(self):
        provider = ScriptedProvider(reply="Hello")

        response = await provider.complete("system", "hi")

        assert response.content == "Hello"
        assert provider.prompts == ["system"]

    @pytest.mark.asyncio
    async def test_failed_response_raises(self):
        provider = ScriptedProvider()
        provider.error = "503 overloaded"

        with pytest.raises(BackendError, match="overloaded") as exc_info:
            await provider.complete("system", "hi")

        assert exc_info.value.provider == "openai"

    @pytest.mark.asyncio
    async def test_blank_response_raises(self):
        provider = ScriptedProvider(reply="  \n ")

        with pytest.raises(BackendError, match="empty"):
            await provider.complete("system", "hi")


def openai_completion(content="Done.", prompt_tokens=40, completion_tokens=10):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


class TestOpenAICompatibleProviders:

    def test_no_key_means_no_client(self):
        assert OpenAIProvider(api_key="")._client is None

    @pytest.mark.asyncio
    async def test_missing_key_returns_error_response(self):
        response = await OpenAIProvider(api_key="").generate("hi")

        assert response.success is False
        assert "not configured" in response.error

    @pytest.mark.asyncio
    async def test_generate_sends_system_and_user_messages(self):
        provider = OpenAIProvider(api_key="sk-test")
        provider._client = MagicMock()
        provider._client.chat.completions.create = AsyncMock(return_value=openai_completion())

        response = await provider.generate("turn on the porch light", system_prompt="You are a home assistant.")

        kwargs = provider._client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"] == [
            {"role": "system", "content": "You are a home assistant."},
            {"role": "user", "content": "turn on the porch light"},
        ]
        assert response.content == "Done."
        assert response.usage.total_tokens == 50
        assert response.provider == ProviderType.OPENAI

    @pytest.mark.asyncio
    async def test_no_choices_is_an_error(self):
        provider = OpenAIProvider(api_key="sk-test")
        provider._client = MagicMock()
        provider._client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(choices=[], usage=None)
        )

        response = await provider.generate("hi")

        assert response.success is False

    @pytest.mark.asyncio
    async def test_sdk_exception_is_captured(self):
        provider = OpenAIProvider(api_key="sk-test")
        provider._client = MagicMock()
        provider._client.chat.completions.create = AsyncMock(side_effect=RuntimeError("connection reset"))

        response = await provider.generate("hi")

        assert response.success is False
        assert response.error == "connection reset"

    def test_grok_uses_xai_endpoint(self):
        provider = GrokProvider(api_key="xai-test")

        assert provider.provider_type == ProviderType.GROK
        assert provider.base_url == "https://api.x.ai/v1"

    def test_lmstudio_needs_no_key(self):
        provider = LMStudioProvider(url="http://192.168.1.20:1234/")

        assert provider._client is not None
        assert provider.base_url == "http://192.168.1.20:1234/v1"
        assert provider.provider_type == ProviderType.LMSTUDIO


class TestAnthropicProvider:

    @pytest.mark.asyncio
    async def test_generate_joins_text_blocks(self):
        provider = AnthropicProvider(api_key="sk-ant-test")
        provider._client = MagicMock()
        provider._client.messages.create = AsyncMock(return_value=SimpleNamespace(
            content=[SimpleNamespace(text="Sure! "), SimpleNamespace(text="ACTION: light.turn_on light.desk")],
            usage=SimpleNamespace(input_tokens=30, output_tokens=12),
        ))

        response = await provider.generate("desk light on", system_prompt="rules")

        kwargs = provider._client.messages.create.call_args.kwargs
        assert kwargs["system"] == "rules"
        assert kwargs["messages"] == [{"role": "user", "content": "desk light on"}]
        assert response.content == "Sure! ACTION: light.turn_on light.desk"
        assert response.usage.total_tokens == 42

    @pytest.mark.asyncio
    async def test_missing_key(self):
        response = await AnthropicProvider(api_key="").generate("hi")

        assert response.success is False


class TestGeminiProvider:

    @pytest.mark.asyncio
    async def test_generate_uses_async_client(self):
        provider = GeminiProvider(api_key="test-key")
        provider._client = MagicMock()
        provider._client.aio.models.generate_content = AsyncMock(return_value=SimpleNamespace(
            text="It is 21 degrees.",
            usage_metadata=SimpleNamespace(prompt_token_count=25, candidates_token_count=7),
        ))

        response = await provider.generate("how warm is it?", system_prompt="rules")

        kwargs = provider._client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash"
        assert kwargs["contents"] == "how warm is it?"
        assert response.content == "It is 21 degrees."
        assert response.usage.total_tokens == 32

    @pytest.mark.asyncio
    async def test_missing_usage_metadata(self):
        provider = GeminiProvider(api_key="test-key")
        provider._client = MagicMock()
        provider._client.aio.models.generate_content = AsyncMock(
            return_value=SimpleNamespace(text="ok", usage_metadata=None)
        )

        response = await provider.generate("hi")

        assert response.usage.total_tokens == 0


class TestBuildProvider:

    def test_default_is_lmstudio(self):
        provider = build_provider(Settings(AI_PROVIDER="lmstudio"))

        assert isinstance(provider, LMStudioProvider)

    def test_claude_alias(self):
        provider = build_provider(Settings(AI_PROVIDER="Claude", ANTHROPIC_API_KEY="sk-ant-test"))

        assert isinstance(provider, AnthropicProvider)

    def test_models_come_from_settings(self):
        provider = build_provider(Settings(AI_PROVIDER="openai", OPENAI_API_KEY="sk-test", OPENAI_MODEL="gpt-4o"))

        assert provider.model == "gpt-4o"

    @pytest.mark.parametrize("name", ["openai", "anthropic", "gemini", "grok"])
    def test_missing_key_fails_fast(self, name):
        settings = Settings(
            AI_PROVIDER=name,
            OPENAI_API_KEY="",
            ANTHROPIC_API_KEY="",
            GEMINI_API_KEY="",
            GROK_API_KEY="",
        )

        with pytest.raises(ConfigurationError):
            build_provider(settings)

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError, match="Unknown AI provider"):
            build_provider(Settings(AI_PROVIDER="mystery"))


class TestAIMetrics:

    def test_cost_estimate(self):
        metrics = AIMetrics()

        record = metrics.record_request(
            request_id="abc123",
            provider=ProviderType.OPENAI,
            model="gpt-4o-mini",
            tokens=TokenUsage(prompt_tokens=1_000_000, completion_tokens=1_000_000),
            latency_ms=250.0,
            success=True,
        )

        assert record.estimated_cost == pytest.approx(0.75)

    def test_local_backend_is_free(self):
        metrics = AIMetrics()

        record = metrics.record_request("r1", ProviderType.LMSTUDIO, "local-model", TokenUsage(5000, 500), 900.0, True)

        assert record.estimated_cost == 0.0

    def test_aggregates_and_history(self):
        metrics = AIMetrics(max_history=2)
        for i in range(3):
            metrics.record_request(f"r{i}", ProviderType.GROK, "grok-beta", TokenUsage(10, 5), 100.0, i != 1)

        stats = metrics.get_stats()
        assert stats.total_requests == 3
        assert stats.failed_requests == 1
        assert stats.requests_by_provider == {"grok": 3}
        assert [m.request_id for m in metrics.get_recent_requests()] == ["r2", "r1"]

    def test_summary_dict_and_reset(self):
        metrics = AIMetrics()
        metrics.record_request("r1", ProviderType.OPENAI, "gpt-4o-mini", TokenUsage(100, 50), 200.0, True)
        metrics.record_request("r2", ProviderType.OPENAI, "gpt-4o-mini", TokenUsage(100, 50), 400.0, False)

        summary = metrics.get_stats().to_dict()
        assert summary["success_rate"] == 50.0
        assert summary["total_tokens"] == 300
        assert summary["avg_latency_ms"] == 300.0

        metrics.reset()
        assert metrics.get_stats().total_requests == 0
        assert metrics.get_recent_requests() == []
