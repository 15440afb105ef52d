"""create slots, bookings and logbook_entries tables

Revision ID: a1c2e3f4b5d6
Revises:
Create Date: 2025-09-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'a1c2e3f4b5d6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Supervision slots, keyed by (supervisor, slot id)
    op.create_table(
        'slots',
        sa.Column('supervisor_id', sa.String(255), nullable=False),
        sa.Column('id', sa.String(128), nullable=False),
        sa.Column('start', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('end', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('location', sa.String(100), nullable=True),
        sa.Column('daily_cap_for_trainee', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='available'),
        sa.Column('trainee_id', sa.String(255), nullable=True),
        sa.Column('booking_id', sa.UUID(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('supervisor_id', 'id'),
        sa.CheckConstraint(
            "status IN ('available', 'booked', 'blocked')",
            name='ck_slots_status',
        ),
        sa.CheckConstraint(
            "(status = 'booked') = (trainee_id IS NOT NULL AND booking_id IS NOT NULL)",
            name='ck_slots_booked_binding',
        ),
    )
    op.create_index('idx_slots_start', 'slots', ['start'])
    op.create_index('ix_slots_status', 'slots', ['status'])

    # Bookings
    op.create_table(
        'bookings',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('supervisor_id', sa.String(255), nullable=False),
        sa.Column('slot_id', sa.String(128), nullable=False),
        sa.Column('trainee_id', sa.String(255), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='booked'),
        sa.Column('slot_date_key', sa.String(10), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['supervisor_id', 'slot_id'],
            ['slots.supervisor_id', 'slots.id'],
            ondelete='RESTRICT',
        ),
        sa.CheckConstraint(
            "status IN ('booked', 'cancelled')",
            name='ck_bookings_status',
        ),
    )
    # Daily-cap query: trainee + status + day bucket
    op.create_index(
        'idx_bookings_trainee_status_day', 'bookings',
        ['trainee_id', 'status', 'slot_date_key'],
    )
    # At most one live booking per slot
    op.create_index(
        'uq_bookings_active_slot', 'bookings',
        ['supervisor_id', 'slot_id'],
        unique=True,
        postgresql_where=sa.text("status = 'booked'"),
    )

    # Logbook entries
    op.create_table(
        'logbook_entries',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('owner_id', sa.String(255), nullable=False),
        sa.Column('date', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('indication', sa.Text(), nullable=True),
        sa.Column('views', postgresql.JSONB(), nullable=True),
        sa.Column('findings', postgresql.JSONB(), nullable=True),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('directly_observed', sa.Boolean(), nullable=True),
        sa.Column('image_quality', sa.String(20), nullable=True),
        sa.Column('demographics', postgresql.JSONB(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('diagnosis', sa.Text(), nullable=True),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('mentor_signature', postgresql.JSONB(), nullable=True),
        sa.Column('supervisor_signature', postgresql.JSONB(), nullable=True),
        sa.Column('locked', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "NOT locked OR supervisor_signature IS NOT NULL",
            name='ck_logbook_entries_locked_signed',
        ),
    )
    op.create_index('ix_logbook_entries_owner_id', 'logbook_entries', ['owner_id'])


def downgrade() -> None:
    op.drop_index('ix_logbook_entries_owner_id', table_name='logbook_entries')
    op.drop_table('logbook_entries')

    op.drop_index('uq_bookings_active_slot', table_name='bookings')
    op.drop_index('idx_bookings_trainee_status_day', table_name='bookings')
    op.drop_table('bookings')

    op.drop_index('ix_slots_status', table_name='slots')
    op.drop_index('idx_slots_start', table_name='slots')
    op.drop_table('slots')
