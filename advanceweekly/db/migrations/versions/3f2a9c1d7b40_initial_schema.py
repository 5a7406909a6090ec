"""initial_schema

Revision ID: 3f2a9c1d7b40
Revises:
Create Date: 2026-10-12 09:14:27.518204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f2a9c1d7b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create operation, preference, consolidation, draft and integration tables."""
    op.create_table(
        'operations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('job_type', sa.Enum(
            'weekly_reflection_generation', 'career_plan_generation',
            name='job_type', native_enum=False, length=64,
        ), nullable=False),
        sa.Column('status', sa.Enum(
            'queued', 'processing', 'completed', 'failed',
            name='operation_status', native_enum=False, length=20,
        ), nullable=False),
        sa.Column('progress', sa.Integer(), nullable=False),
        sa.Column('dedup_key', sa.String(length=64), nullable=True),
        sa.Column('input_data', sa.JSON(), nullable=True),
        sa.Column('result_data', sa.JSON(), nullable=True),
        sa.Column('error_message', sa.String(), nullable=True),
        sa.Column('error_kind', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('extra_metadata', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_operations_user_id', 'operations', ['user_id'])
    op.create_index('ix_operations_status', 'operations', ['status'])
    # At most one non-failed operation per (user, job type, target)
    op.create_index(
        'uq_operations_active_target',
        'operations',
        ['user_id', 'job_type', 'dedup_key'],
        unique=True,
        postgresql_where=sa.text("status != 'failed'"),
    )

    op.create_table(
        'user_preferences',
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('auto_generate', sa.Boolean(), nullable=False),
        sa.Column('preferred_day', sa.Enum(
            'MONDAY', 'TUESDAY', 'WEDNESDAY', 'THURSDAY', 'FRIDAY', 'SATURDAY', 'SUNDAY',
            name='weekday',
        ), nullable=False),
        sa.Column('preferred_hour', sa.Integer(), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=False),
        sa.Column('include_integrations', sa.JSON(), nullable=True),
        sa.Column('notify_on_generation', sa.Boolean(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('user_id'),
    )
    op.create_index('ix_user_preferences_auto_generate', 'user_preferences', ['auto_generate'])

    op.create_table(
        'consolidated_weeks',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('week_number', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('source_id', sa.String(length=64), nullable=False),
        sa.Column('status', sa.Enum('AVAILABLE', 'UNAVAILABLE', name='sourcestatus'), nullable=False),
        sa.Column('raw_data', sa.JSON(), nullable=True),
        sa.Column('themes', sa.JSON(), nullable=True),
        sa.Column('error_message', sa.String(), nullable=True),
        sa.Column('consolidated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'user_id', 'week_number', 'year', 'source_id', name='uq_consolidated_weeks_user_week_source'
        ),
    )
    op.create_index('ix_consolidated_weeks_user_id', 'consolidated_weeks', ['user_id'])

    op.create_table(
        'draft_reflections',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('week_number', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('week_start', sa.Date(), nullable=False),
        sa.Column('week_end', sa.Date(), nullable=False),
        sa.Column('content', sa.String(), nullable=False),
        sa.Column('source_operation_id', sa.Uuid(), nullable=True),
        sa.Column('generated_automatically', sa.Boolean(), nullable=False),
        sa.Column('reduced_confidence', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'week_number', 'year', name='uq_draft_reflections_user_week'),
    )
    op.create_index('ix_draft_reflections_user_id', 'draft_reflections', ['user_id'])

    op.create_table(
        'integration_connections',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('source_id', sa.String(length=64), nullable=False),
        sa.Column('access_token', sa.String(), nullable=True),
        sa.Column('external_account', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('connected_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'source_id', name='uq_integration_connections_user_source'),
    )
    op.create_index('ix_integration_connections_user_id', 'integration_connections', ['user_id'])

    op.create_table(
        'assessment_insights',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('summary', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_assessment_insights_user_id', 'assessment_insights', ['user_id'])
    op.create_index('ix_assessment_insights_created_at', 'assessment_insights', ['created_at'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('assessment_insights')
    op.drop_table('integration_connections')
    op.drop_table('draft_reflections')
    op.drop_table('consolidated_weeks')
    op.drop_table('user_preferences')
    op.drop_index('uq_operations_active_target', table_name='operations')
    op.drop_table('operations')
    sa.Enum(name='sourcestatus').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='weekday').drop(op.get_bind(), checkfirst=True)
