"""
AI Logger - Structured logging for command interpretation.

Every entry is a JSON payload carrying the request id, so one command can
be traced from the backend request through each executed action.

Log Format:
==========
Each log entry includes:
- Timestamp
- Request ID (for tracing)
- Event name (ai_request, ai_response, action_executed, ai_error, ...)
- Event-specific fields
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from homepilot.ai.providers.base import AIResponse

# Configure the AI logger
logger = logging.getLogger("homepilot.ai")
logger.setLevel(logging.INFO)

# Create console handler if not exists
if not logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.INFO)
    formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s [%(name)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AILogger:
    """
    Structured logger for command interpretation.

    Usage:
        ai_logger.log_request(request_id="abc123", prompt="Turn on the TV",
                              provider="openai", model="gpt-4o-mini")
        ai_logger.log_response(request_id="abc123", response=ai_response)
    """

    def __init__(self):
        self._logger = logger

    def log_request(
        self,
        request_id: str,
        prompt: str,
        provider: str,
        model: str,
        scope: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log a backend request.

        Args:
            request_id: Unique request identifier
            prompt: The utterance being sent (truncated for privacy)
            provider: AI provider name
            model: Model name
            scope: Optional user scope
            metadata: Additional metadata (e.g. context size)
        """
        log_data = {
            "event": "ai_request",
            "request_id": request_id,
            "provider": provider,
            "model": model,
            "prompt_length": len(prompt),
            "prompt_preview": prompt[:100] + "..." if len(prompt) > 100 else prompt,
            "scope": scope,
            "timestamp": _now(),
        }

        if metadata:
            log_data["metadata"] = metadata

        self._logger.info(f"AI Request: {json.dumps(log_data)}")

    def log_response(
        self,
        request_id: str,
        response: AIResponse,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Log a backend response."""
        log_data = {
            "event": "ai_response",
            "request_id": request_id,
            "provider": response.provider.value,
            "model": response.model,
            "success": response.success,
            "latency_ms": round(response.latency_ms, 2),
            "tokens": {
                "prompt": response.usage.prompt_tokens,
                "completion": response.usage.completion_tokens,
                "total": response.usage.total_tokens,
            },
            "response_length": len(response.content),
            "timestamp": _now(),
        }

        if not response.success:
            log_data["error"] = response.error
        if metadata:
            log_data["metadata"] = metadata

        level = logging.INFO if response.success else logging.WARNING
        self._logger.log(level, f"AI Response: {json.dumps(log_data)}")

    def log_action(
        self,
        request_id: str,
        service: str,
        entity_id: Optional[str],
        success: bool,
        error: Optional[str] = None,
    ) -> None:
        """Log one executed device action."""
        log_data = {
            "event": "action_executed",
            "request_id": request_id,
            "service": service,
            "entity_id": entity_id,
            "success": success,
            "timestamp": _now(),
        }

        if error:
            log_data["error"] = error

        level = logging.INFO if success else logging.WARNING
        self._logger.log(level, f"Action Executed: {json.dumps(log_data)}")

    def log_error(
        self,
        request_id: str,
        error: str,
        stage: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log an error in the interpretation pipeline.

        Args:
            request_id: Request identifier
            error: Error message
            stage: Where the error occurred (a RequestStage value)
            metadata: Additional context
        """
        log_data = {
            "event": "ai_error",
            "request_id": request_id,
            "error": error,
            "stage": stage,
            "timestamp": _now(),
        }

        if metadata:
            log_data["metadata"] = metadata

        self._logger.error(f"AI Error: {json.dumps(log_data)}")

    def log_event(
        self,
        request_id: str,
        event_type: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Log a generic pipeline event, such as a stage transition."""
        log_data = {
            "event": event_type,
            "request_id": request_id,
            "timestamp": _now(),
        }

        if data:
            log_data.update(data)

        self._logger.info(f"AI Event: {json.dumps(log_data, default=str)}")


# ---------------------------------------------------------------------------
# SINGLETON INSTANCE
# ---------------------------------------------------------------------------
ai_logger = AILogger()
