"""add subtasks table"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0003_add_subtasks"
down_revision = "0002_add_recurrence"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "subtasks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "todo_id",
            sa.Integer(),
            sa.ForeignKey("todos.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_subtasks_todo_id", "subtasks", ["todo_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_subtasks_todo_id", table_name="subtasks")
    op.drop_table("subtasks")
