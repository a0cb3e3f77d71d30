"""
AI Module - the language side of HomePilot.

Module Structure:
================
- providers/: NL backend clients (OpenAI, Anthropic, Gemini, Grok, LM Studio)
- actions/: the ACTION: token grammar
- prompts/: fixed prompt blocks
- context.py: the Context Builder
- monitoring/: structured logging and usage metrics

Flow:
=====
1. User: "Turn on the living room lights"
2. Context Builder: entities + learned patterns → system prompt
3. Provider: free-text reply with inline ACTION: tokens
4. Grammar: reply → visible text + ActionCommands
5. Interpreter: execute actions, learn, respond
"""

__version__ = "0.1.0"
