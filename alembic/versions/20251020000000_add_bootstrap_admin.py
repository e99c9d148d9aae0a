"""Add single-row bootstrap_admin marker for the first-administrator signup.

Revision ID: 20251020000000
Revises: 20251019000000
Create Date: 2025-10-20

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "20251020000000"
down_revision: Union[str, None] = "20251019000000"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "bootstrap_admin",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name=op.f("fk_bootstrap_admin_user_id_users")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_bootstrap_admin")),
        sa.CheckConstraint("id = 1", name=op.f("ck_bootstrap_admin_single_row")),
    )
    # Databases that already have accounts are past bootstrap: claim the row for the oldest one.
    op.execute(
        "INSERT INTO bootstrap_admin (id, user_id) "
        "SELECT 1, MIN(id) FROM users HAVING COUNT(*) > 0"
    )


def downgrade() -> None:
    op.drop_table("bootstrap_admin")
