"""
Environments Module - integrations with the outside world.

environments/
├── __init__.py
├── base.py               # EntitySnapshot + EntitySource / ActionExecutor contracts
└── home_assistant/
    ├── __init__.py
    └── client.py         # REST client (entity source + action executor)
"""

from homepilot.environments.base import (
    ActionExecutor,
    EntitySnapshot,
    EntitySource,
)

__all__ = ["ActionExecutor", "EntitySnapshot", "EntitySource"]
