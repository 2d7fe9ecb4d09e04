"""create appointment and message history tables

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '20261019_01'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_REMINDER_SENT = sa.text("type = 'reminder' AND direction = 'sent'")


def upgrade() -> None:
    op.create_table(
        "professionals",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("full_name", sa.String(), nullable=False),
        sa.Column("specialty", sa.String(), nullable=True),
        sa.Column("registration", sa.String(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "schedules",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("professional_id", sa.String(36), sa.ForeignKey("professionals.id"), nullable=False),
        sa.Column("date_time", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="open"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_schedules_date_time", "schedules", ["date_time"])

    op.create_table(
        "appointments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("schedule_id", sa.String(36), sa.ForeignKey("schedules.id"), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="scheduled"),
        sa.Column("patient_name", sa.String(), nullable=False),
        sa.Column("patient_primary_phone", sa.String(), nullable=False),
        sa.Column("patient_secondary_phone", sa.String(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_appointments_status", "appointments", ["status"])
    op.create_index("ix_appointments_patient_primary_phone", "appointments", ["patient_primary_phone"])

    op.create_table(
        "message_history",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("appointment_id", sa.String(36), nullable=True),
        sa.Column("patient_phone", sa.String(32), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("direction", sa.String(8), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("response_type", sa.String(8), nullable=True),
        sa.Column("already_responded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("date", sa.String(10), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_message_history_lookup",
        "message_history",
        ["appointment_id", "patient_phone", "type", "direction"],
    )
    op.create_index("ix_message_history_phone", "message_history", ["patient_phone", "created_at"])
    op.create_index(
        "uq_message_history_reminder_sent",
        "message_history",
        ["appointment_id", "patient_phone", "date"],
        unique=True,
        postgresql_where=_REMINDER_SENT,
    )


def downgrade() -> None:
    op.drop_index("uq_message_history_reminder_sent", table_name="message_history")
    op.drop_index("ix_message_history_phone", table_name="message_history")
    op.drop_index("ix_message_history_lookup", table_name="message_history")
    op.drop_table("message_history")
    op.drop_index("ix_appointments_patient_primary_phone", table_name="appointments")
    op.drop_index("ix_appointments_status", table_name="appointments")
    op.drop_table("appointments")
    op.drop_index("ix_schedules_date_time", table_name="schedules")
    op.drop_table("schedules")
    op.drop_table("professionals")
