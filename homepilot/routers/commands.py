"""
Commands router - natural-language commands in, conversational replies out.

The command flow:
1. UI calls POST /commands with an utterance
2. The Command Interpreter builds context from the local mirror and
   learned patterns, asks the NL backend, and runs any device actions
3. The reply (with any failure warnings appended) goes back to the UI

A failed backend call is still a 200 with success=false and a polite
reply; only a missing backend configuration answers 503.
"""

from fastapi import APIRouter, Depends

from homepilot.ai.monitoring import ai_metrics
from homepilot.deps import get_interpreter
from homepilot.schemas.command import CommandRequest, CommandResponse
from homepilot.services.interpreter import CommandInterpreter

# ---------------------------------------------------------------------------
# ROUTER SETUP
# ---------------------------------------------------------------------------
router = APIRouter(prefix="/commands", tags=["commands"])


@router.post("", response_model=CommandResponse)
async def send_command(
    payload: CommandRequest,
    interpreter: CommandInterpreter = Depends(get_interpreter),
):
    """
    Interpret one utterance.

    Returns the reply plus the actions that were executed. Never fails
    because of the backend or the hub; those show up in the reply.
    """
    result = await interpreter.interpret(payload.utterance, scope=payload.scope)
    return result.to_dict()


@router.get("/stats")
def command_stats(recent: int = 10):
    """Backend usage since startup: tokens, latency, cost, success rate."""
    return {
        "summary": ai_metrics.get_stats().to_dict(),
        "recent": [m.to_dict() for m in ai_metrics.get_recent_requests(limit=recent)],
    }
