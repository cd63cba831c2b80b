"""create master series table"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_create_master_series"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "master_series",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("series_id", sa.String(length=64), nullable=False, unique=True),
        sa.Column("company_id", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("priority", sa.String(length=20), nullable=False, server_default="normal"),
        sa.Column("assigned_to", sa.String(length=64), nullable=False),
        sa.Column("assigned_by", sa.String(length=64), nullable=True),
        sa.Column("attachments", sa.JSON(), nullable=False),
        sa.Column("pattern", sa.String(length=20), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("forever", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("include_sunday", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("weekly_days", sa.JSON(), nullable=False),
        sa.Column("monthly_day", sa.Integer(), nullable=True),
        sa.Column("yearly_duration", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("week_off_days", sa.JSON(), nullable=False),
        sa.Column("regenerating", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("successor_series_id", sa.String(length=64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("auto_delete_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_master_series_company_id", "master_series", ["company_id"], unique=False)
    op.create_index("ix_master_series_assigned_to", "master_series", ["assigned_to"], unique=False)
    op.create_index("ix_master_series_regenerating", "master_series", ["regenerating"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_master_series_regenerating", table_name="master_series")
    op.drop_index("ix_master_series_assigned_to", table_name="master_series")
    op.drop_index("ix_master_series_company_id", table_name="master_series")
    op.drop_table("master_series")
