"""
Declarative base shared by every ORM model.

import_models() registers every model module so that
Base.metadata knows about every table (needed by create_all and Alembic).
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def import_models() -> None:
    """Register all model modules on Base.metadata."""
    from homepilot.models import entity, learned_pattern, sync_status  # noqa: F401
