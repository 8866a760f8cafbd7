"""create_cases_table

Revision ID: 3f1c2a9e7b10
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3f1c2a9e7b10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Tolerate SQLite schemas created by auto_create_tables outside Alembic.
    bind = op.get_bind()
    insp = sa.inspect(bind)

    existing_indexes: set[str] = set()
    if insp.has_table("cases"):
        existing_indexes = {i.get("name") for i in insp.get_indexes("cases")}
    else:
        op.create_table(
            "cases",
            sa.Column("id", sa.String(), nullable=False),
            sa.Column("case_id", sa.String(), nullable=False),
            sa.Column("owner_id", sa.String(), nullable=False),
            sa.Column("status", sa.String(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.Column("files_purged_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("owner_id", "case_id", name="uq_cases_owner_case"),
        )

    idx_owner = op.f("ix_cases_owner_id")
    if idx_owner not in existing_indexes:
        op.create_index(idx_owner, "cases", ["owner_id"], unique=False)
    if "ix_cases_status_updated_at" not in existing_indexes:
        op.create_index(
            "ix_cases_status_updated_at",
            "cases",
            ["status", "updated_at"],
            unique=False,
        )


def downgrade() -> None:
    op.drop_index("ix_cases_status_updated_at", table_name="cases")
    op.drop_index(op.f("ix_cases_owner_id"), table_name="cases")
    op.drop_table("cases")
