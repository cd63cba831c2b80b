from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Callable, Sequence

from assignflow.domain.errors import EngineError, NotForeverError, PreconditionError, SeriesNotFoundError
from assignflow.domain.recurrence import add_years, expand
from assignflow.infra.repository import InstanceRepository, MasterSeriesRepository

from .horizon_service import HorizonService
from .instance_builder import build_instances, mint_series_id, template_from_master
from .notifications import NotificationDispatcher, NotificationEvent
from .pending_counts import PendingCountsService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReassignResult:
    series_id: str
    new_series_id: str
    created_count: int
    new_start: date
    new_end: date
    failed_count: int = 0


@dataclass(frozen=True)
class BulkReassignResult:
    results: list[ReassignResult] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)


class ReassignService:
    """Rolls a forever series into its next one-year period.

    The next period always becomes a new series with its own id; the old
    series keeps its instances and records the successor.
    """

    def __init__(
        self,
        masters: MasterSeriesRepository,
        instances: InstanceRepository,
        *,
        horizon: HorizonService | None = None,
        dispatcher: NotificationDispatcher | None = None,
        counts: PendingCountsService | None = None,
        id_factory: Callable[[], str] = mint_series_id,
    ) -> None:
        self._masters = masters
        self._instances = instances
        self._horizon = horizon or HorizonService(masters, instances)
        self._dispatcher = dispatcher
        self._counts = counts
        self._id_factory = id_factory

    def reassign(self, series_id: str, include_attachments: bool = True) -> ReassignResult:
        master = self._masters.get(series_id)
        if not master:
            raise SeriesNotFoundError(series_id)
        if not master.rule.forever:
            raise NotForeverError(series_id)
        if master.is_deleted:
            raise PreconditionError(f"series {series_id} is in the recycle bin")
        if master.successor_series_id:
            raise PreconditionError(
                f"series {series_id} was already reassigned to {master.successor_series_id}"
            )

        last_due = self._instances.max_due_date(series_id)
        if last_due is None:
            raise PreconditionError(f"series {series_id} has no live instances")

        new_start = last_due + timedelta(days=1)
        new_end = add_years(new_start, 1)
        new_rule = replace(master.rule, start_date=new_start, end_date=new_end)

        dates = expand(new_rule, new_start, new_end)
        # backward shifting of an excluded anchor can reach the previous period
        carried = [day for day in dates if day <= last_due]
        if carried:
            logger.info(
                "Series %s: dropping %d date(s) already covered up to %s",
                series_id,
                len(carried),
                last_due,
            )
            dates = [day for day in dates if day > last_due]
        if not dates:
            raise PreconditionError(f"series {series_id} produces no occurrences after {last_due}")

        new_series_id = self._id_factory()
        successor = replace(
            master,
            series_id=new_series_id,
            rule=new_rule,
            attachments=master.attachments if include_attachments else (),
            is_active=True,
            regenerating=False,
            successor_series_id=None,
            created_at=None,
            updated_at=None,
        )
        self._masters.add(successor)

        built = build_instances(
            dates,
            template_from_master(successor),
            new_series_id,
            successor.assigned_to,
            successor.company_id,
        )
        result = self._instances.bulk_insert(built)
        self._masters.update(series_id, {"successor_series_id": new_series_id})
        self._horizon.reconcile(new_series_id)

        if self._dispatcher is not None and result.inserted:
            self._dispatcher.dispatch(NotificationEvent(
                assignee_id=successor.assigned_to,
                series_id=new_series_id,
                title=successor.title,
                due_date=result.inserted[0].due_date,
            ))
        if self._counts is not None:
            self._counts.invalidate(successor.company_id)

        logger.info(
            "Series %s reassigned as %s covering %s..%s (%d created, %d failed)",
            series_id,
            new_series_id,
            new_start,
            new_end,
            result.inserted_count,
            result.failed_count,
        )
        return ReassignResult(
            series_id=series_id,
            new_series_id=new_series_id,
            created_count=result.inserted_count,
            new_start=new_start,
            new_end=new_end,
            failed_count=result.failed_count,
        )

    def reassign_many(self, series_ids: Sequence[str], include_attachments: bool = True) -> BulkReassignResult:
        outcome = BulkReassignResult()
        for series_id in series_ids:
            try:
                outcome.results.append(self.reassign(series_id, include_attachments))
            except EngineError as exc:
                logger.warning("Reassign of %s failed: %s", series_id, exc)
                outcome.failures[series_id] = f"{exc.code}: {exc}"
        return outcome
