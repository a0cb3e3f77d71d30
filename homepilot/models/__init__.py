"""
SQLAlchemy ORM models.

models/
├── entity.py           # EntityRecord (mirror) + EntityHistory
├── learned_pattern.py  # LearnedPattern
└── sync_status.py      # SyncStatus
"""
