"""
Monitoring Module - logging and metrics for backend calls.

- Request/response logging (structured JSON, traced by request id)
- Token usage and estimated cost
- Latency and success rate

Usage:
======
    from homepilot.ai.monitoring import ai_logger, ai_metrics

    ai_logger.log_response(request_id, response)
    ai_metrics.record_request(request_id, provider, model, tokens, latency, success)
    stats = ai_metrics.get_stats()
"""

from homepilot.ai.monitoring.logger import AILogger, ai_logger
from homepilot.ai.monitoring.metrics import AIMetrics, ai_metrics

__all__ = [
    "AILogger",
    "ai_logger",
    "AIMetrics",
    "ai_metrics",
]
