"""
AI Actions Module - the action-token grammar.

This module provides:
- parse_actions: split a backend reply into visible text + ActionCommands
- ActionCommand: one requested device action
- ParsedReply: the parse result
"""

from homepilot.ai.actions.grammar import (
    ACTION_PATTERN,
    ActionCommand,
    ParsedReply,
    format_action,
    parse_actions,
)

__all__ = [
    "ACTION_PATTERN",
    "ActionCommand",
    "ParsedReply",
    "format_action",
    "parse_actions",
]
