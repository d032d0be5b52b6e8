"""Add conversation progress columns

Revision ID: 002
Revises: 001
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence
from typing import Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column(
        "contacts",
        sa.Column("last_response_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.add_column(
        "contacts",
        sa.Column(
            "conversation_complete",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
    )
    op.create_index(
        op.f("ix_contacts_last_response_at"),
        "contacts",
        ["last_response_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_contacts_last_response_at"), table_name="contacts")
    op.drop_column("contacts", "conversation_complete")
    op.drop_column("contacts", "last_response_at")
