"""create homepilot tables

Revision ID: a1f4c7e20b93
Revises:
Create Date: 2025-12-02 10:00:00.000000

Creates the four tables the assistant persists:

1. entities          - local mirror of hub state (one row per entity)
2. entity_history    - one row per observed state transition
3. learned_patterns  - aliases, command shapes, preferences, feedback
4. sync_status       - one row per background sync stream
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1f4c7e20b93'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the entity mirror, history, pattern and sync status tables."""
    op.create_table(
        'entities',
        sa.Column('entity_id', sa.String(length=255), nullable=False),
        sa.Column('friendly_name', sa.String(length=255), nullable=False),
        sa.Column('domain', sa.String(length=100), nullable=False),
        sa.Column('state', sa.Text(), nullable=False),
        sa.Column('unit_of_measurement', sa.String(length=50), nullable=True),
        sa.Column('device_class', sa.String(length=100), nullable=True),
        sa.Column('attributes', sa.JSON(), nullable=True),
        sa.Column('last_changed', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_synced', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('entity_id'),
    )
    op.create_index(op.f('ix_entities_friendly_name'), 'entities', ['friendly_name'], unique=False)
    op.create_index(op.f('ix_entities_domain'), 'entities', ['domain'], unique=False)
    op.create_index(op.f('ix_entities_last_synced'), 'entities', ['last_synced'], unique=False)

    op.create_table(
        'entity_history',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('entity_id', sa.String(length=255), nullable=False),
        sa.Column('state', sa.Text(), nullable=False),
        sa.Column('state_numeric', sa.Float(), nullable=True),
        sa.Column('attributes', sa.JSON(), nullable=True),
        sa.Column('recorded_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_entity_history_entity_id'), 'entity_history', ['entity_id'], unique=False)
    op.create_index(op.f('ix_entity_history_recorded_at'), 'entity_history', ['recorded_at'], unique=False)
    # Range scans per entity ("last 7 days of sensor.house_power")
    op.create_index(
        'idx_entity_history_entity_time',
        'entity_history',
        ['entity_id', 'recorded_at'],
        unique=False
    )

    op.create_table(
        'learned_patterns',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=100), nullable=True),
        sa.Column('pattern_type', sa.String(length=100), nullable=False),
        sa.Column('pattern_key', sa.Text(), nullable=False),
        sa.Column('pattern_value', sa.JSON(), nullable=True),
        sa.Column('confidence_score', sa.Float(), nullable=False),
        sa.Column('usage_count', sa.Integer(), nullable=False),
        sa.Column('learning_source', sa.String(length=50), nullable=False),
        sa.Column('source_metadata', sa.JSON(), nullable=True),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_learned_patterns_user_id'), 'learned_patterns', ['user_id'], unique=False)
    # Identity lookup used by every upsert
    op.create_index(
        'idx_learned_patterns_identity',
        'learned_patterns',
        ['user_id', 'pattern_type', 'pattern_key'],
        unique=False
    )

    op.create_table(
        'sync_status',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('sync_type', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('next_sync_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('error_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sync_type'),
    )


def downgrade() -> None:
    """Drop every HomePilot table."""
    op.drop_table('sync_status')
    op.drop_index('idx_learned_patterns_identity', table_name='learned_patterns')
    op.drop_index(op.f('ix_learned_patterns_user_id'), table_name='learned_patterns')
    op.drop_table('learned_patterns')
    op.drop_index('idx_entity_history_entity_time', table_name='entity_history')
    op.drop_index(op.f('ix_entity_history_recorded_at'), table_name='entity_history')
    op.drop_index(op.f('ix_entity_history_entity_id'), table_name='entity_history')
    op.drop_table('entity_history')
    op.drop_index(op.f('ix_entities_last_synced'), table_name='entities')
    op.drop_index(op.f('ix_entities_domain'), table_name='entities')
    op.drop_index(op.f('ix_entities_friendly_name'), table_name='entities')
    op.drop_table('entities')
