"""Initial schema - all tables

Revision ID: 001
Revises:
Create Date: 2026-01-01 00:00:00.000000

This migration creates all initial tables for TutorTime:
- time_entry_days: One tutor workday per franchise-local date
- time_entry_sessions: Worked spans within a day (one may be open)
- time_entry_audit: Append-only ledger of day transitions
- weekly_attestations: Typed-name sign-off of closed workweeks
- franchise_payroll_settings: Per-franchise time zone and pay period type
- franchise_pay_period_overrides: Manually posted pay periods
- scheduled_slots: Posted tutoring schedule
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from tutortime.config import get_settings

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Get schema from config
settings = get_settings()
SCHEMA = settings.db_schema  # Will be None for dbo


def _fk(target: str) -> str:
    return f'{SCHEMA}.{target}' if SCHEMA else target


def upgrade() -> None:
    # Create schema if specified and doesn't exist
    if SCHEMA:
        op.execute(f"IF NOT EXISTS (SELECT * FROM sys.schemas WHERE name = '{SCHEMA}') EXEC('CREATE SCHEMA {SCHEMA}')")

    # Time entry days
    op.create_table(
        'time_entry_days',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('franchise_id', sa.Integer(), nullable=False),
        sa.Column('tutor_id', sa.Integer(), nullable=False),
        sa.Column('work_date', sa.Date(), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
        sa.Column('clock_state', sa.SmallInteger(), nullable=False, server_default='1'),
        sa.Column('schedule_snapshot', sa.JSON(), nullable=True),
        sa.Column('comparison', sa.JSON(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('decided_by', sa.Integer(), nullable=True),
        sa.Column('decided_at', sa.DateTime(), nullable=True),
        sa.Column('decision_reason', sa.String(length=2000), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('GETUTCDATE()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('GETUTCDATE()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('franchise_id', 'tutor_id', 'work_date', name='uq_time_entry_days_franchise_tutor_work_date'),
        schema=SCHEMA,
    )
    op.create_index('ix_time_entry_days_franchise_tutor_work_date', 'time_entry_days', ['franchise_id', 'tutor_id', 'work_date'], schema=SCHEMA)
    op.create_index('ix_time_entry_days_status', 'time_entry_days', ['status'], schema=SCHEMA)
    op.create_index('ix_time_entry_days_work_date', 'time_entry_days', ['work_date'], schema=SCHEMA)

    # Time entry sessions
    op.create_table(
        'time_entry_sessions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('entry_day_id', sa.Integer(), nullable=False),
        sa.Column('franchise_id', sa.Integer(), nullable=False),
        sa.Column('tutor_id', sa.Integer(), nullable=False),
        sa.Column('start_at', sa.DateTime(), nullable=False),
        sa.Column('end_at', sa.DateTime(), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('GETUTCDATE()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('GETUTCDATE()')),
        sa.ForeignKeyConstraint(['entry_day_id'], [_fk('time_entry_days.id')], name='fk_time_entry_sessions_day', ondelete='CASCADE'),
        sa.CheckConstraint('end_at IS NULL OR end_at > start_at', name='ck_time_entry_sessions_end_after_start'),
        sa.PrimaryKeyConstraint('id'),
        schema=SCHEMA,
    )
    op.create_index('ix_time_entry_sessions_entry_day_id', 'time_entry_sessions', ['entry_day_id'], schema=SCHEMA)
    op.create_index('ix_time_entry_sessions_start_at', 'time_entry_sessions', ['start_at'], schema=SCHEMA)
    op.create_index('ix_time_entry_sessions_franchise_tutor_start_at', 'time_entry_sessions', ['franchise_id', 'tutor_id', 'start_at'], schema=SCHEMA)

    # Audit ledger
    op.create_table(
        'time_entry_audit',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('entry_day_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('actor_account_type', sa.String(length=16), nullable=False),
        sa.Column('actor_account_id', sa.Integer(), nullable=True),
        sa.Column('at', sa.DateTime(), nullable=False, server_default=sa.text('GETUTCDATE()')),
        sa.Column('previous_status', sa.String(length=20), nullable=True),
        sa.Column('new_status', sa.String(length=20), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(['entry_day_id'], [_fk('time_entry_days.id')], name='fk_time_entry_audit_day', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        schema=SCHEMA,
    )
    op.create_index('ix_time_entry_audit_entry_day_id', 'time_entry_audit', ['entry_day_id'], schema=SCHEMA)
    op.create_index('ix_time_entry_audit_at', 'time_entry_audit', ['at'], schema=SCHEMA)

    # Weekly attestations
    op.create_table(
        'weekly_attestations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('franchise_id', sa.Integer(), nullable=False),
        sa.Column('tutor_id', sa.Integer(), nullable=False),
        sa.Column('week_start', sa.Date(), nullable=False),
        sa.Column('week_end', sa.Date(), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=False),
        sa.Column('typed_name', sa.String(length=200), nullable=False),
        sa.Column('signed_at', sa.DateTime(), nullable=False, server_default=sa.text('GETUTCDATE()')),
        sa.Column('attestation_text', sa.Text(), nullable=False),
        sa.Column('attestation_text_version', sa.String(length=50), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('franchise_id', 'tutor_id', 'week_end', name='uq_weekly_attestations_franchise_tutor_week_end'),
        schema=SCHEMA,
    )
    op.create_index('ix_weekly_attestations_franchise_tutor_week_end', 'weekly_attestations', ['franchise_id', 'tutor_id', 'week_end'], schema=SCHEMA)

    # Franchise payroll settings (maintained outside this service)
    op.create_table(
        'franchise_payroll_settings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('franchise_id', sa.Integer(), nullable=False),
        sa.Column('policy_type', sa.String(length=50), nullable=True),
        sa.Column('timezone', sa.String(length=64), nullable=True),
        sa.Column('pay_period_type', sa.String(length=20), nullable=True),
        sa.Column('auto_email_enabled', sa.Boolean(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        schema=SCHEMA,
    )
    op.create_index('ix_franchise_payroll_settings_franchise_id', 'franchise_payroll_settings', ['franchise_id'], unique=True, schema=SCHEMA)

    # Pay period overrides
    op.create_table(
        'franchise_pay_period_overrides',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('franchise_id', sa.Integer(), nullable=False),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('period_end', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('GETUTCDATE()')),
        sa.PrimaryKeyConstraint('id'),
        schema=SCHEMA,
    )
    op.create_index('ix_pay_period_overrides_franchise_range', 'franchise_pay_period_overrides', ['franchise_id', 'period_start', 'period_end'], schema=SCHEMA)

    # Posted schedule
    op.create_table(
        'scheduled_slots',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('franchise_id', sa.Integer(), nullable=False),
        sa.Column('tutor_id', sa.Integer(), nullable=False),
        sa.Column('schedule_date', sa.Date(), nullable=False),
        sa.Column('time_id', sa.Integer(), nullable=False),
        sa.Column('time_label', sa.String(length=100), nullable=False, server_default=''),
        sa.PrimaryKeyConstraint('id'),
        schema=SCHEMA,
    )
    op.create_index('ix_scheduled_slots_franchise_tutor_date', 'scheduled_slots', ['franchise_id', 'tutor_id', 'schedule_date'], schema=SCHEMA)


def downgrade() -> None:
    # Drop in reverse order of creation (respecting foreign keys)
    op.drop_index('ix_scheduled_slots_franchise_tutor_date', table_name='scheduled_slots', schema=SCHEMA)
    op.drop_table('scheduled_slots', schema=SCHEMA)

    op.drop_index('ix_pay_period_overrides_franchise_range', table_name='franchise_pay_period_overrides', schema=SCHEMA)
    op.drop_table('franchise_pay_period_overrides', schema=SCHEMA)

    op.drop_index('ix_franchise_payroll_settings_franchise_id', table_name='franchise_payroll_settings', schema=SCHEMA)
    op.drop_table('franchise_payroll_settings', schema=SCHEMA)

    op.drop_index('ix_weekly_attestations_franchise_tutor_week_end', table_name='weekly_attestations', schema=SCHEMA)
    op.drop_table('weekly_attestations', schema=SCHEMA)

    op.drop_index('ix_time_entry_audit_at', table_name='time_entry_audit', schema=SCHEMA)
    op.drop_index('ix_time_entry_audit_entry_day_id', table_name='time_entry_audit', schema=SCHEMA)
    op.drop_table('time_entry_audit', schema=SCHEMA)

    op.drop_index('ix_time_entry_sessions_franchise_tutor_start_at', table_name='time_entry_sessions', schema=SCHEMA)
    op.drop_index('ix_time_entry_sessions_start_at', table_name='time_entry_sessions', schema=SCHEMA)
    op.drop_index('ix_time_entry_sessions_entry_day_id', table_name='time_entry_sessions', schema=SCHEMA)
    op.drop_table('time_entry_sessions', schema=SCHEMA)

    op.drop_index('ix_time_entry_days_work_date', table_name='time_entry_days', schema=SCHEMA)
    op.drop_index('ix_time_entry_days_status', table_name='time_entry_days', schema=SCHEMA)
    op.drop_index('ix_time_entry_days_franchise_tutor_work_date', table_name='time_entry_days', schema=SCHEMA)
    op.drop_table('time_entry_days', schema=SCHEMA)
