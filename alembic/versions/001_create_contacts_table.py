"""Create contacts table

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence
from typing import Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "contacts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("uuid", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("contact_status", sa.String(), nullable=False, server_default="new"),
        sa.Column("scheduled_appointment_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("time_zone", sa.String(), nullable=True),
        sa.Column("appointment_status", sa.String(), nullable=True),
        sa.Column("appointment_notes", sa.Text(), nullable=True),
        sa.Column("last_appointment_update", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_auto_reminder_sent", sa.DateTime(timezone=True), nullable=True),
        sa.Column("auto_reminder_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("workflow_markers", sa.JSON(), nullable=False),
        sa.Column("conversation_responses", sa.JSON(), nullable=False),
        sa.Column("custom_fields", sa.JSON(), nullable=False),
        sa.Column("crm_notes", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("auto_reminder_count >= 0", name="ck_contacts_reminder_count"),
    )
    op.create_index(op.f("ix_contacts_uuid"), "contacts", ["uuid"], unique=True)
    op.create_index(op.f("ix_contacts_email"), "contacts", ["email"], unique=True)
    op.create_index(op.f("ix_contacts_phone"), "contacts", ["phone"], unique=False)
    op.create_index(
        op.f("ix_contacts_scheduled_appointment_at"),
        "contacts",
        ["scheduled_appointment_at"],
        unique=False,
    )
    op.create_index(
        op.f("ix_contacts_appointment_status"),
        "contacts",
        ["appointment_status"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_contacts_appointment_status"), table_name="contacts")
    op.drop_index(op.f("ix_contacts_scheduled_appointment_at"), table_name="contacts")
    op.drop_index(op.f("ix_contacts_phone"), table_name="contacts")
    op.drop_index(op.f("ix_contacts_email"), table_name="contacts")
    op.drop_index(op.f("ix_contacts_uuid"), table_name="contacts")
    op.drop_table("contacts")
