from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from .db import Base


def utcnow() -> datetime:
    return datetime.utcnow()


class MasterSeriesModel(Base):
    __tablename__ = "master_series"

    id = Column(Integer, primary_key=True)
    series_id = Column(String(64), nullable=False, unique=True)
    company_id = Column(String(64), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    priority = Column(String(20), nullable=False, default="normal")
    assigned_to = Column(String(64), nullable=False, index=True)
    assigned_by = Column(String(64), nullable=True)
    attachments = Column(JSON, nullable=False, default=list)

    pattern = Column(String(20), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    forever = Column(Boolean, nullable=False, default=False)
    include_sunday = Column(Boolean, nullable=False, default=True)
    weekly_days = Column(JSON, nullable=False, default=list)
    monthly_day = Column(Integer, nullable=True)
    yearly_duration = Column(Integer, nullable=False, default=1)
    week_off_days = Column(JSON, nullable=False, default=list)

    regenerating = Column(Boolean, nullable=False, default=False, index=True)
    successor_series_id = Column(String(64), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime, nullable=True)
    auto_delete_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class TaskInstanceModel(Base):
    __tablename__ = "task_instances"
    __table_args__ = (
        UniqueConstraint("series_id", "sequence_number", name="uq_task_instances_series_sequence"),
        Index("ix_task_instances_series_due", "series_id", "due_date", "is_active"),
        Index("ix_task_instances_company_status", "company_id", "status", "is_active"),
    )

    id = Column(Integer, primary_key=True)
    series_id = Column(String(64), nullable=True)
    sequence_number = Column(Integer, nullable=True)
    company_id = Column(String(64), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    pattern = Column(String(20), nullable=False)
    priority = Column(String(20), nullable=False, default="normal")
    assigned_to = Column(String(64), nullable=False, index=True)
    assigned_by = Column(String(64), nullable=True)
    attachments = Column(JSON, nullable=False, default=list)
    due_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="pending")

    completed_at = Column(DateTime, nullable=True)
    completion_remarks = Column(Text, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    rejection_remarks = Column(Text, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime, nullable=True)
    auto_delete_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
