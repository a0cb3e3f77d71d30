"""
Prompts Module - Centralized prompt templates for the assistant.

Keeping prompts centralized makes them:
- Easy to update and iterate
- Consistent with the action-token grammar
- Testable and version-controlled
"""

from homepilot.ai.prompts.assistant_prompts import (
    ACTION_FORMAT_BLOCK,
    ASSISTANT_INTRO,
    RULES_BLOCK,
)

__all__ = [
    "ACTION_FORMAT_BLOCK",
    "ASSISTANT_INTRO",
    "RULES_BLOCK",
]
