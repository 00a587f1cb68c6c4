"""add recurrence and reminder fields"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0002_add_recurrence"
down_revision = "0001_create_todos"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("todos", sa.Column("recurrence_pattern", sa.String(length=10), nullable=True))
    op.add_column("todos", sa.Column("reminder_minutes", sa.Integer(), nullable=True))
    op.add_column("todos", sa.Column("last_notification_sent", sa.DateTime(), nullable=True))


def downgrade() -> None:
    op.drop_column("todos", "last_notification_sent")
    op.drop_column("todos", "reminder_minutes")
    op.drop_column("todos", "recurrence_pattern")
