"""create task instances table"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0002_create_task_instances"
down_revision = "0001_create_master_series"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "task_instances",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("series_id", sa.String(length=64), nullable=True),
        sa.Column("sequence_number", sa.Integer(), nullable=True),
        sa.Column("company_id", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("pattern", sa.String(length=20), nullable=False),
        sa.Column("priority", sa.String(length=20), nullable=False, server_default="normal"),
        sa.Column("assigned_to", sa.String(length=64), nullable=False),
        sa.Column("assigned_by", sa.String(length=64), nullable=True),
        sa.Column("attachments", sa.JSON(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("completion_remarks", sa.Text(), nullable=True),
        sa.Column("rejected_at", sa.DateTime(), nullable=True),
        sa.Column("rejection_remarks", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("auto_delete_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("series_id", "sequence_number", name="uq_task_instances_series_sequence"),
    )
    op.create_index("ix_task_instances_assigned_to", "task_instances", ["assigned_to"], unique=False)
    op.create_index(
        "ix_task_instances_series_due",
        "task_instances",
        ["series_id", "due_date", "is_active"],
        unique=False,
    )
    op.create_index(
        "ix_task_instances_company_status",
        "task_instances",
        ["company_id", "status", "is_active"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_task_instances_company_status", table_name="task_instances")
    op.drop_index("ix_task_instances_series_due", table_name="task_instances")
    op.drop_index("ix_task_instances_assigned_to", table_name="task_instances")
    op.drop_table("task_instances")
