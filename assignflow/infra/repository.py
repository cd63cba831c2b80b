from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from assignflow.domain.entities import (
    BulkWriteFailure,
    BulkWriteResult,
    MasterSeriesEntity,
    RecurrenceRule,
    TaskInstanceEntity,
    attachment_from_dict,
    attachment_to_dict,
)
from assignflow.domain.enums import Pattern, Priority, TaskStatus
from assignflow.domain.filters import InstanceFilters

from .db import SessionLocal
from .models import MasterSeriesModel, TaskInstanceModel

logger = logging.getLogger(__name__)

LIVE_INSTANCE = (TaskInstanceModel.is_active.is_(True), TaskInstanceModel.is_deleted.is_(False))


def _to_rule(model: MasterSeriesModel) -> RecurrenceRule:
    return RecurrenceRule(
        pattern=Pattern(model.pattern),
        start_date=model.start_date,
        end_date=model.end_date,
        forever=model.forever,
        include_sunday=model.include_sunday,
        weekly_days=frozenset(model.weekly_days or ()),
        monthly_day=model.monthly_day,
        yearly_duration=model.yearly_duration,
        week_off_days=frozenset(model.week_off_days or ()),
    )


def _to_master(model: MasterSeriesModel) -> MasterSeriesEntity:
    return MasterSeriesEntity(
        series_id=model.series_id,
        rule=_to_rule(model),
        title=model.title,
        description=model.description,
        priority=Priority(model.priority),
        company_id=model.company_id,
        assigned_to=model.assigned_to,
        assigned_by=model.assigned_by,
        attachments=tuple(attachment_from_dict(item) for item in model.attachments or ()),
        is_active=model.is_active,
        is_deleted=model.is_deleted,
        deleted_at=model.deleted_at,
        auto_delete_at=model.auto_delete_at,
        regenerating=model.regenerating,
        successor_series_id=model.successor_series_id,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _master_columns(master: MasterSeriesEntity) -> dict:
    rule = master.rule
    return {
        "series_id": master.series_id,
        "company_id": master.company_id,
        "title": master.title,
        "description": master.description,
        "priority": Priority(master.priority).value,
        "assigned_to": master.assigned_to,
        "assigned_by": master.assigned_by,
        "attachments": [attachment_to_dict(item) for item in master.attachments],
        "pattern": Pattern(rule.pattern).value,
        "start_date": rule.start_date,
        "end_date": rule.end_date,
        "forever": rule.forever,
        "include_sunday": rule.include_sunday,
        "weekly_days": sorted(int(day) for day in rule.weekly_days),
        "monthly_day": rule.monthly_day,
        "yearly_duration": rule.yearly_duration,
        "week_off_days": sorted(int(day) for day in rule.week_off_days),
        "regenerating": master.regenerating,
        "successor_series_id": master.successor_series_id,
        "is_active": master.is_active,
        "is_deleted": master.is_deleted,
        "deleted_at": master.deleted_at,
        "auto_delete_at": master.auto_delete_at,
    }


def _to_instance(model: TaskInstanceModel) -> TaskInstanceEntity:
    return TaskInstanceEntity(
        id=model.id,
        series_id=model.series_id,
        sequence_number=model.sequence_number,
        due_date=model.due_date,
        title=model.title,
        description=model.description,
        pattern=Pattern(model.pattern),
        priority=Priority(model.priority),
        company_id=model.company_id,
        assigned_to=model.assigned_to,
        assigned_by=model.assigned_by,
        status=TaskStatus(model.status),
        attachments=tuple(attachment_from_dict(item) for item in model.attachments or ()),
        completed_at=model.completed_at,
        completion_remarks=model.completion_remarks,
        rejected_at=model.rejected_at,
        rejection_remarks=model.rejection_remarks,
        is_active=model.is_active,
        is_deleted=model.is_deleted,
        deleted_at=model.deleted_at,
        auto_delete_at=model.auto_delete_at,
    )


def _instance_columns(instance: TaskInstanceEntity) -> dict:
    return {
        "series_id": instance.series_id,
        "sequence_number": instance.sequence_number,
        "company_id": instance.company_id,
        "title": instance.title,
        "description": instance.description,
        "pattern": Pattern(instance.pattern).value,
        "priority": Priority(instance.priority).value,
        "assigned_to": instance.assigned_to,
        "assigned_by": instance.assigned_by,
        "attachments": [attachment_to_dict(item) for item in instance.attachments],
        "due_date": instance.due_date,
        "status": TaskStatus(instance.status).value,
        "completed_at": instance.completed_at,
        "completion_remarks": instance.completion_remarks,
        "rejected_at": instance.rejected_at,
        "rejection_remarks": instance.rejection_remarks,
        "is_active": instance.is_active,
        "is_deleted": instance.is_deleted,
        "deleted_at": instance.deleted_at,
        "auto_delete_at": instance.auto_delete_at,
    }


def _apply_filters(stmt, filters: InstanceFilters) -> object:
    if not filters.include_deleted:
        stmt = stmt.where(*LIVE_INSTANCE)
    if filters.company_id:
        stmt = stmt.where(TaskInstanceModel.company_id == filters.company_id)
    if filters.series_id:
        stmt = stmt.where(TaskInstanceModel.series_id == filters.series_id)
    if filters.assigned_to:
        stmt = stmt.where(TaskInstanceModel.assigned_to == filters.assigned_to)
    if filters.pattern:
        stmt = stmt.where(TaskInstanceModel.pattern == Pattern(filters.pattern).value)
    if filters.statuses:
        stmt = stmt.where(
            TaskInstanceModel.status.in_([TaskStatus(status).value for status in filters.statuses])
        )
    if filters.due_from:
        stmt = stmt.where(TaskInstanceModel.due_date >= filters.due_from)
    if filters.due_to:
        stmt = stmt.where(TaskInstanceModel.due_date <= filters.due_to)

    if filters.search:
        pattern = f"%{filters.search}%"
        stmt = stmt.where(
            or_(
                TaskInstanceModel.title.ilike(pattern),
                TaskInstanceModel.description.ilike(pattern),
            )
        )

    return stmt


class MasterSeriesRepository:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def get(self, series_id: str) -> Optional[MasterSeriesEntity]:
        with self._session_factory() as session:
            model = self._find(session, series_id)
            return _to_master(model) if model else None

    def add(self, master: MasterSeriesEntity) -> MasterSeriesEntity:
        """Insert a new master; an existing series id raises ``IntegrityError``."""
        with self._session_factory() as session:
            model = MasterSeriesModel(**_master_columns(master))
            session.add(model)
            session.commit()
            session.refresh(model)
            return _to_master(model)

    def upsert(self, master: MasterSeriesEntity) -> MasterSeriesEntity:
        with self._session_factory() as session:
            model = self._find(session, master.series_id)
            if model is None:
                model = MasterSeriesModel(**_master_columns(master))
                session.add(model)
            else:
                for key, value in _master_columns(master).items():
                    setattr(model, key, value)
            session.commit()
            session.refresh(model)
            return _to_master(model)

    def update(self, series_id: str, data: dict) -> Optional[MasterSeriesEntity]:
        with self._session_factory() as session:
            model = self._find(session, series_id)
            if not model:
                return None
            for key, value in data.items():
                setattr(model, key, value)
            session.commit()
            session.refresh(model)
            return _to_master(model)

    def delete(self, series_id: str) -> bool:
        with self._session_factory() as session:
            model = self._find(session, series_id)
            if not model:
                return False
            session.delete(model)
            session.commit()
            return True

    def list_masters(
        self,
        company_id: str | None = None,
        assigned_to: str | None = None,
        include_deleted: bool = False,
    ) -> list[MasterSeriesEntity]:
        with self._session_factory() as session:
            stmt = select(MasterSeriesModel)
            if company_id:
                stmt = stmt.where(MasterSeriesModel.company_id == company_id)
            if assigned_to:
                stmt = stmt.where(MasterSeriesModel.assigned_to == assigned_to)
            if not include_deleted:
                stmt = stmt.where(MasterSeriesModel.is_deleted.is_(False))
            stmt = stmt.order_by(MasterSeriesModel.start_date.asc(), MasterSeriesModel.id.asc())
            return [_to_master(model) for model in session.scalars(stmt)]

    def list_regenerating(self) -> list[MasterSeriesEntity]:
        with self._session_factory() as session:
            stmt = select(MasterSeriesModel).where(MasterSeriesModel.regenerating.is_(True))
            return [_to_master(model) for model in session.scalars(stmt)]

    def list_forever(self) -> list[MasterSeriesEntity]:
        with self._session_factory() as session:
            stmt = select(MasterSeriesModel).where(
                MasterSeriesModel.forever.is_(True),
                MasterSeriesModel.is_deleted.is_(False),
            )
            return [_to_master(model) for model in session.scalars(stmt)]

    def list_expired(self, now: datetime) -> list[MasterSeriesEntity]:
        with self._session_factory() as session:
            stmt = select(MasterSeriesModel).where(
                MasterSeriesModel.is_deleted.is_(True),
                MasterSeriesModel.auto_delete_at.is_not(None),
                MasterSeriesModel.auto_delete_at <= now,
            )
            return [_to_master(model) for model in session.scalars(stmt)]

    @staticmethod
    def _find(session, series_id: str) -> MasterSeriesModel | None:
        return session.scalar(
            select(MasterSeriesModel).where(MasterSeriesModel.series_id == series_id)
        )


class InstanceRepository:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def bulk_insert(self, instances: list[TaskInstanceEntity]) -> BulkWriteResult:
        """Unordered insert: each row gets its own savepoint, so a rejected
        row does not stop its siblings and written rows are never rolled back.
        """
        inserted: list[TaskInstanceModel] = []
        failures: list[BulkWriteFailure] = []
        if not instances:
            return BulkWriteResult()

        with self._session_factory() as session:
            for instance in instances:
                model = TaskInstanceModel(**_instance_columns(instance))
                try:
                    with session.begin_nested():
                        session.add(model)
                except IntegrityError as exc:
                    logger.warning(
                        "Instance %s#%s rejected: %s",
                        instance.series_id,
                        instance.sequence_number,
                        exc.orig,
                    )
                    failures.append(
                        BulkWriteFailure(instance.series_id, instance.sequence_number, str(exc.orig))
                    )
                else:
                    inserted.append(model)
            session.commit()
            return BulkWriteResult(
                inserted=[_to_instance(model) for model in inserted],
                failures=failures,
            )

    def get(self, instance_id: int) -> Optional[TaskInstanceEntity]:
        with self._session_factory() as session:
            model = session.get(TaskInstanceModel, instance_id)
            return _to_instance(model) if model else None

    def list_instances(self, filters: InstanceFilters) -> list[TaskInstanceEntity]:
        with self._session_factory() as session:
            stmt = _apply_filters(select(TaskInstanceModel), filters)
            stmt = stmt.order_by(
                TaskInstanceModel.due_date.asc(),
                TaskInstanceModel.sequence_number.asc(),
                TaskInstanceModel.id.asc(),
            )
            return [_to_instance(model) for model in session.scalars(stmt)]

    def list_by_series(self, series_id: str, include_deleted: bool = False) -> list[TaskInstanceEntity]:
        return self.list_instances(
            InstanceFilters(series_id=series_id, include_deleted=include_deleted)
        )

    def update(self, instance_id: int, data: dict) -> Optional[TaskInstanceEntity]:
        with self._session_factory() as session:
            model = session.get(TaskInstanceModel, instance_id)
            if not model:
                return None
            for key, value in data.items():
                setattr(model, key, value)
            session.commit()
            session.refresh(model)
            return _to_instance(model)

    def update_by_series(
        self,
        series_id: str,
        data: dict,
        statuses: tuple[TaskStatus, ...] = (),
    ) -> int:
        with self._session_factory() as session:
            stmt = update(TaskInstanceModel).where(TaskInstanceModel.series_id == series_id)
            if statuses:
                stmt = stmt.where(
                    TaskInstanceModel.status.in_([TaskStatus(status).value for status in statuses])
                )
            result = session.execute(stmt.values(**data))
            session.commit()
            return result.rowcount or 0

    def shift_pending_one_time(
        self,
        instance_ids: list[int],
        company_id: str,
        from_user: str,
        to_user: str,
    ) -> int:
        with self._session_factory() as session:
            result = session.execute(
                update(TaskInstanceModel)
                .where(
                    TaskInstanceModel.id.in_(instance_ids),
                    TaskInstanceModel.company_id == company_id,
                    TaskInstanceModel.assigned_to == from_user,
                    TaskInstanceModel.pattern == Pattern.ONE_TIME.value,
                    TaskInstanceModel.status == TaskStatus.PENDING.value,
                    *LIVE_INSTANCE,
                )
                .values(assigned_to=to_user)
            )
            session.commit()
            return result.rowcount or 0

    def delete(self, instance_id: int) -> bool:
        with self._session_factory() as session:
            model = session.get(TaskInstanceModel, instance_id)
            if not model:
                return False
            session.delete(model)
            session.commit()
            return True

    def delete_by_series(self, series_id: str) -> int:
        with self._session_factory() as session:
            result = session.execute(
                delete(TaskInstanceModel).where(TaskInstanceModel.series_id == series_id)
            )
            session.commit()
            return result.rowcount or 0

    def max_due_date(self, series_id: str) -> Optional[date]:
        with self._session_factory() as session:
            return session.scalar(
                select(func.max(TaskInstanceModel.due_date)).where(
                    TaskInstanceModel.series_id == series_id,
                    *LIVE_INSTANCE,
                )
            )

    def count_by_pattern(self, company_id: str, statuses: tuple[TaskStatus, ...]) -> dict[str, int]:
        with self._session_factory() as session:
            rows = session.execute(
                select(TaskInstanceModel.pattern, func.count().label("total"))
                .where(
                    TaskInstanceModel.company_id == company_id,
                    TaskInstanceModel.status.in_([TaskStatus(status).value for status in statuses]),
                    *LIVE_INSTANCE,
                )
                .group_by(TaskInstanceModel.pattern)
            ).all()
        return {row.pattern: row.total for row in rows}

    def mark_overdue(self, today: date, skip_patterns: tuple[Pattern, ...] = ()) -> int:
        with self._session_factory() as session:
            stmt = update(TaskInstanceModel).where(
                TaskInstanceModel.status == TaskStatus.PENDING.value,
                TaskInstanceModel.due_date < today,
                *LIVE_INSTANCE,
            )
            if skip_patterns:
                stmt = stmt.where(
                    TaskInstanceModel.pattern.notin_([Pattern(item).value for item in skip_patterns])
                )
            result = session.execute(stmt.values(status=TaskStatus.OVERDUE.value))
            session.commit()
            return result.rowcount or 0

    def list_expired(self, now: datetime) -> list[TaskInstanceEntity]:
        with self._session_factory() as session:
            stmt = select(TaskInstanceModel).where(
                TaskInstanceModel.is_deleted.is_(True),
                TaskInstanceModel.auto_delete_at.is_not(None),
                TaskInstanceModel.auto_delete_at <= now,
            )
            return [_to_instance(model) for model in session.scalars(stmt)]
