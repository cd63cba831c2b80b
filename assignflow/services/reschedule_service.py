from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from assignflow.config import SETTINGS
from assignflow.domain.entities import MasterSeriesEntity, RecurrenceRule
from assignflow.domain.enums import Pattern, Priority, TaskStatus
from assignflow.domain.errors import (
    PartialPersistenceFailure,
    PreconditionError,
    SeriesNotFoundError,
    ValidationError,
)
from assignflow.domain.recurrence import expand, pin_window, rule_window, validate_rule
from assignflow.infra.repository import InstanceRepository, MasterSeriesRepository

from .horizon_service import HorizonService
from .instance_builder import build_instances, template_from_master
from .pending_counts import PendingCountsService

logger = logging.getLogger(__name__)

OPEN_STATUSES = (TaskStatus.PENDING, TaskStatus.IN_PROGRESS, TaskStatus.OVERDUE)


@dataclass(frozen=True)
class RescheduleResult:
    series_id: str
    instance_count: int
    removed_count: int = 0


class RescheduleService:
    """Replaces a series' instances with the expansion of a new rule.

    The replace runs in two phases. First the new rule is stored on the master
    together with the ``regenerating`` marker; then the old instances are
    deleted and the new ones written, and the marker is cleared. A series
    still carrying the marker was interrupted and is rolled forward by
    ``resume_interrupted``.
    """

    def __init__(
        self,
        masters: MasterSeriesRepository,
        instances: InstanceRepository,
        *,
        horizon: HorizonService | None = None,
        counts: PendingCountsService | None = None,
        horizon_years: int | None = None,
    ) -> None:
        self._masters = masters
        self._instances = instances
        self._horizon = horizon or HorizonService(masters, instances)
        self._counts = counts
        self._horizon_years = horizon_years or SETTINGS.forever_horizon_years

    def reschedule(self, series_id: str, new_rule: RecurrenceRule) -> RescheduleResult:
        master = self._masters.get(series_id)
        if not master:
            raise SeriesNotFoundError(series_id)
        if master.is_deleted:
            raise PreconditionError(f"series {series_id} is in the recycle bin")

        validate_rule(new_rule)
        if new_rule.pattern == Pattern.ONE_TIME:
            raise ValidationError("pattern", "a series cannot become a one-time task")

        stored_rule = pin_window(new_rule, self._horizon_years)
        master = self._masters.upsert(replace(master, rule=stored_rule, regenerating=True))
        return self._regenerate(master)

    def resume_interrupted(self) -> list[RescheduleResult]:
        results = []
        for master in self._masters.list_regenerating():
            logger.info("Resuming interrupted reschedule of series %s", master.series_id)
            try:
                results.append(self._regenerate(master))
            except PartialPersistenceFailure:
                logger.exception("Series %s is still incomplete", master.series_id)
        return results

    def update_details(
        self,
        series_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        priority: Priority | str | None = None,
        assigned_to: str | None = None,
    ) -> int:
        """Change descriptive fields without touching dates.

        A new assignee takes over only the open instances; completed and
        rejected ones stay attributed to whoever handled them.
        """
        if not self._masters.get(series_id):
            raise SeriesNotFoundError(series_id)

        shared = {}
        if title is not None:
            shared["title"] = title
        if description is not None:
            shared["description"] = description
        if priority is not None:
            shared["priority"] = Priority(priority).value
        if not shared and assigned_to is None:
            raise ValidationError("details", "nothing to update")

        master_changes = dict(shared)
        if assigned_to is not None:
            master_changes["assigned_to"] = assigned_to
        self._masters.update(series_id, master_changes)

        updated = 0
        if shared:
            updated = self._instances.update_by_series(series_id, shared)
        if assigned_to is not None:
            moved = self._instances.update_by_series(
                series_id, {"assigned_to": assigned_to}, statuses=OPEN_STATUSES
            )
            updated = max(updated, moved)
        return updated

    def _regenerate(self, master: MasterSeriesEntity) -> RescheduleResult:
        series_id = master.series_id
        removed = self._instances.delete_by_series(series_id)

        dates = expand(master.rule, *rule_window(master.rule, self._horizon_years))
        built = build_instances(
            dates, template_from_master(master), series_id, master.assigned_to, master.company_id
        )
        result = self._instances.bulk_insert(built)
        if result.failed_count:
            # marker stays set so the series is picked up by resume_interrupted
            raise PartialPersistenceFailure(result.inserted_count, result.failed_count)

        if master.rule.forever:
            self._horizon.reconcile(series_id)
        self._masters.update(series_id, {"regenerating": False})
        if self._counts is not None:
            self._counts.invalidate(master.company_id)

        logger.info(
            "Rescheduled series %s: removed %d, created %d", series_id, removed, result.inserted_count
        )
        return RescheduleResult(series_id, result.inserted_count, removed)
