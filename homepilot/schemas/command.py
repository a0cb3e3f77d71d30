"""
Command schemas - request/response formats for natural-language commands.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# REQUEST SCHEMAS (what the client sends)
# ---------------------------------------------------------------------------

class CommandRequest(BaseModel):
    """
    Schema for one natural-language command.

    Example request body:
    {
        "utterance": "turn on the living room lights"
    }
    """
    utterance: str = Field(..., min_length=1, max_length=2000, description="What the user said")

    # scope: optional user id partitioning learned patterns (None = global)
    scope: Optional[str] = Field(default=None, max_length=100, description="Pattern scope")


# ---------------------------------------------------------------------------
# RESPONSE SCHEMAS (what the server returns)
# ---------------------------------------------------------------------------

class ActionResultOut(BaseModel):
    """One executed device action."""
    domain: str
    service: str
    entity_id: str
    data: Optional[Dict[str, Any]] = None
    success: bool
    error: Optional[str] = None


class CommandResponse(BaseModel):
    """
    Schema for the interpreter's reply.

    Example response:
    {
        "reply": "Sure!",
        "success": true,
        "stage": "responded",
        "request_id": "550e8400-e29b-41d4-a716-446655440000",
        "actions": [{"domain": "light", "service": "turn_on",
                     "entity_id": "light.living_room", "success": true}],
        "provider": "openai"
    }
    """
    reply: str
    success: bool
    stage: str
    request_id: str
    actions: List[ActionResultOut] = Field(default_factory=list)
    provider: Optional[str] = None
    error: Optional[str] = None
