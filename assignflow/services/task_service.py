from __future__ import annotations

import logging
from datetime import date, datetime

from assignflow.domain.entities import TaskInstanceEntity
from assignflow.domain.enums import Pattern, TERMINAL_STATUSES, TaskStatus
from assignflow.domain.errors import PreconditionError, ValidationError
from assignflow.domain.filters import InstanceFilters
from assignflow.infra.models import utcnow
from assignflow.infra.repository import InstanceRepository

from .generation_service import AssigneeDirectory
from .pending_counts import PendingCountsService

logger = logging.getLogger(__name__)


class TaskService:
    def __init__(
        self,
        repo: InstanceRepository,
        counts: PendingCountsService | None = None,
        directory: AssigneeDirectory | None = None,
    ) -> None:
        self._repo = repo
        self._counts = counts
        self._directory = directory

    def list_instances(self, filters: InstanceFilters) -> list[TaskInstanceEntity]:
        return self._repo.list_instances(filters)

    def get_instance(self, instance_id: int) -> TaskInstanceEntity | None:
        return self._repo.get(instance_id)

    def update_status(
        self,
        instance_id: int,
        status: TaskStatus | str,
        remarks: str | None = None,
        now: datetime | None = None,
    ) -> TaskInstanceEntity | None:
        status = TaskStatus(status)
        now = now or utcnow()
        data: dict = {"status": status.value}
        remarks = remarks.strip() if remarks else None

        if status == TaskStatus.COMPLETED:
            data["completed_at"] = now
            data["completion_remarks"] = remarks
        else:
            data["completed_at"] = None
            data["completion_remarks"] = None
        if status == TaskStatus.REJECTED:
            data["rejected_at"] = now
            data["rejection_remarks"] = remarks
        else:
            data["rejected_at"] = None
            data["rejection_remarks"] = None

        task = self._repo.update(instance_id, data)
        if task and self._counts is not None:
            self._counts.invalidate(task.company_id)
        return task

    def start(self, instance_id: int) -> TaskInstanceEntity | None:
        return self.update_status(instance_id, TaskStatus.IN_PROGRESS)

    def complete(self, instance_id: int, remarks: str | None = None, now: datetime | None = None) -> TaskInstanceEntity | None:
        return self.update_status(instance_id, TaskStatus.COMPLETED, remarks, now)

    def reject(self, instance_id: int, remarks: str | None = None, now: datetime | None = None) -> TaskInstanceEntity | None:
        return self.update_status(instance_id, TaskStatus.REJECTED, remarks, now)

    def reopen(self, instance_id: int) -> TaskInstanceEntity | None:
        return self.update_status(instance_id, TaskStatus.PENDING)

    def shift_one_time(
        self,
        instance_ids: list[int],
        from_user: str,
        to_user: str,
        company_id: str,
    ) -> int:
        """Hand pending one-time instances of ``from_user`` over to ``to_user``.

        Instances that are not pending, not one-time or not assigned to
        ``from_user`` are left alone.
        """
        if not instance_ids:
            raise ValidationError("instance_ids", "at least one instance is required")
        if from_user == to_user:
            raise ValidationError("to_user", "source and target users are the same")
        if self._directory is not None:
            for user in (from_user, to_user):
                if not self._directory.exists(user):
                    raise ValidationError("users", f"assignee {user} does not exist")

        shifted = self._repo.shift_pending_one_time(list(instance_ids), company_id, from_user, to_user)
        if not shifted:
            raise PreconditionError(f"no pending one-time instances of {from_user} to shift")
        if self._counts is not None:
            self._counts.invalidate(company_id)
        logger.info("Shifted %d one-time instance(s) from %s to %s", shifted, from_user, to_user)
        return shifted

    def mark_overdue(self, today: date | None = None) -> int:
        """Store ``overdue`` on late pending instances, except daily ones.

        Daily lateness is only ever derived, see ``is_late``.
        """
        return self._repo.mark_overdue(today or date.today(), skip_patterns=(Pattern.DAILY,))


def is_late(task: TaskInstanceEntity, today: date) -> bool:
    return task.status not in TERMINAL_STATUSES and task.due_date < today
