"""
AI Metrics - backend usage, latency and rough cost, kept in memory.

Every backend call made by the Command Interpreter ends up here as one
RequestMetrics record. The rolling window of recent records feeds
GET /commands/stats; the running UsageSummary survives the window.

Prices are USD per 1M tokens (input, output) and only approximate.
LM Studio runs locally and costs nothing.
"""

from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Deque, Dict, List, Tuple

from homepilot.ai.providers.base import ProviderType, TokenUsage

PRICE_PER_1M_TOKENS: Dict[ProviderType, Tuple[float, float]] = {
    ProviderType.OPENAI: (0.15, 0.60),       # gpt-4o-mini
    ProviderType.ANTHROPIC: (0.25, 1.25),    # claude haiku
    ProviderType.GEMINI: (0.30, 2.50),       # gemini flash
    ProviderType.GROK: (5.0, 15.0),
    ProviderType.LMSTUDIO: (0.0, 0.0),
}


def estimate_cost(provider: ProviderType, tokens: TokenUsage) -> float:
    input_price, output_price = PRICE_PER_1M_TOKENS.get(provider, (0.0, 0.0))
    return (tokens.prompt_tokens * input_price + tokens.completion_tokens * output_price) / 1_000_000


@dataclass
class RequestMetrics:
    """One backend call."""
    request_id: str
    provider: ProviderType
    model: str
    tokens: TokenUsage
    latency_ms: float
    success: bool
    estimated_cost: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "provider": self.provider.value,
            "model": self.model,
            "total_tokens": self.tokens.total_tokens,
            "latency_ms": round(self.latency_ms, 2),
            "success": self.success,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class UsageSummary:
    """Running totals since startup or the last reset."""
    total_requests: int = 0
    failed_requests: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_latency_ms: float = 0.0
    estimated_cost: float = 0.0
    requests_by_provider: Counter = field(default_factory=Counter)

    @property
    def successful_requests(self) -> int:
        return self.total_requests - self.failed_requests

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def add(self, record: RequestMetrics) -> None:
        self.total_requests += 1
        if not record.success:
            self.failed_requests += 1
        self.prompt_tokens += record.tokens.prompt_tokens
        self.completion_tokens += record.tokens.completion_tokens
        self.total_latency_ms += record.latency_ms
        self.estimated_cost += record.estimated_cost
        self.requests_by_provider[record.provider.value] += 1

    def to_dict(self) -> Dict[str, Any]:
        requests = self.total_requests or 1
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "success_rate": round(100 * self.successful_requests / requests, 1) if self.total_requests else 0.0,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
            "avg_latency_ms": round(self.total_latency_ms / requests, 2),
            "estimated_cost_usd": round(self.estimated_cost, 4),
            "requests_by_provider": dict(self.requests_by_provider),
        }


class AIMetrics:
    """
    Thread-safe store for backend usage.

    Args:
        max_history: how many recent records to keep for /commands/stats
    """

    def __init__(self, max_history: int = 1000):
        self._lock = Lock()
        self._recent: Deque[RequestMetrics] = deque(maxlen=max_history)
        self._summary = UsageSummary()

    def record_request(
        self,
        request_id: str,
        provider: ProviderType,
        model: str,
        tokens: TokenUsage,
        latency_ms: float,
        success: bool,
    ) -> RequestMetrics:
        record = RequestMetrics(
            request_id=request_id,
            provider=provider,
            model=model,
            tokens=tokens,
            latency_ms=latency_ms,
            success=success,
            estimated_cost=estimate_cost(provider, tokens),
        )
        with self._lock:
            self._recent.append(record)
            self._summary.add(record)
        return record

    def get_stats(self) -> UsageSummary:
        with self._lock:
            return self._summary

    def get_recent_requests(self, limit: int = 10) -> List[RequestMetrics]:
        """Newest first."""
        with self._lock:
            return list(self._recent)[::-1][:limit]

    def reset(self) -> None:
        with self._lock:
            self._recent.clear()
            self._summary = UsageSummary()


ai_metrics = AIMetrics()
