"""add user password hash

Revision ID: 202510150900
Revises: 202510010900
Create Date: 2025-10-15 09:00:00.000000

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op


revision = "202510150900"
down_revision = "202510010900"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Accounts created before this revision have no usable password.
    with op.batch_alter_table("users") as batch_op:
        batch_op.add_column(
            sa.Column(
                "password_hash",
                sa.String(length=255),
                nullable=False,
                server_default="",
            )
        )


def downgrade() -> None:
    with op.batch_alter_table("users") as batch_op:
        batch_op.drop_column("password_hash")
