from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Protocol, Sequence

from sqlalchemy.exc import SQLAlchemyError

from assignflow.config import SETTINGS
from assignflow.domain.entities import MasterSeriesEntity, TaskInstanceEntity, TaskTemplate
from assignflow.domain.enums import Pattern
from assignflow.domain.errors import ValidationError
from assignflow.domain.recurrence import expand, pin_window, rule_window, validate_rule
from assignflow.infra.repository import InstanceRepository, MasterSeriesRepository

from .horizon_service import HorizonService
from .instance_builder import build_instances, mint_series_id
from .notifications import NotificationDispatcher, NotificationEvent
from .pending_counts import PendingCountsService

logger = logging.getLogger(__name__)


class AssigneeDirectory(Protocol):
    def exists(self, assignee_id: str) -> bool: ...


@dataclass(frozen=True)
class GenerationError:
    template_index: int
    title: str
    assignee_id: str | None
    code: str
    parameter: str | None
    message: str


@dataclass(frozen=True)
class GenerationResult:
    created_count: int
    series_ids: list[str] = field(default_factory=list)
    errors: list[GenerationError] = field(default_factory=list)
    failed_count: int = 0


@dataclass(frozen=True)
class _PlannedPair:
    template_index: int
    series_id: str | None
    assignee_id: str
    title: str
    forever: bool
    instances: list[TaskInstanceEntity]


class BulkGenerationService:
    def __init__(
        self,
        masters: MasterSeriesRepository,
        instances: InstanceRepository,
        *,
        horizon: HorizonService | None = None,
        dispatcher: NotificationDispatcher | None = None,
        counts: PendingCountsService | None = None,
        directory: AssigneeDirectory | None = None,
        horizon_years: int | None = None,
        id_factory: Callable[[], str] = mint_series_id,
    ) -> None:
        self._masters = masters
        self._instances = instances
        self._horizon = horizon or HorizonService(masters, instances)
        self._dispatcher = dispatcher
        self._counts = counts
        self._directory = directory
        self._horizon_years = horizon_years or SETTINGS.forever_horizon_years
        self._id_factory = id_factory

    def generate(
        self,
        assignments: Sequence[tuple[TaskTemplate, Sequence[str]]],
        company_id: str,
    ) -> GenerationResult:
        if not assignments:
            raise ValidationError("templates", "at least one template is required")
        for index, (template, assignees) in enumerate(assignments):
            if not assignees:
                raise ValidationError("assignees", f"template {index} ({template.title!r}) has no assignees")

        errors: list[GenerationError] = []
        planned: list[_PlannedPair] = []

        for index, (template, assignees) in enumerate(assignments):
            try:
                validate_rule(template.rule)
                window_start, window_end = rule_window(template.rule, self._horizon_years)
                dates = expand(template.rule, window_start, window_end)
                if not dates:
                    raise ValidationError("rule", "produces no occurrences in its date range")
            except ValidationError as exc:
                logger.info("Template %d (%s) rejected: %s", index, template.title, exc)
                errors.append(GenerationError(index, template.title, None, exc.code, exc.parameter, exc.message))
                continue

            stored_rule = pin_window(template.rule, self._horizon_years)

            for assignee_id in assignees:
                if self._directory is not None and not self._directory.exists(assignee_id):
                    errors.append(GenerationError(
                        index, template.title, assignee_id, "UNKNOWN_ASSIGNEE", "assignees",
                        f"assignee {assignee_id} does not exist",
                    ))
                    continue

                series_id = None
                if template.rule.pattern != Pattern.ONE_TIME:
                    series_id = self._id_factory()
                    try:
                        self._masters.add(MasterSeriesEntity(
                            series_id=series_id,
                            rule=stored_rule,
                            title=template.title,
                            description=template.description,
                            priority=template.priority,
                            company_id=company_id,
                            assigned_to=assignee_id,
                            assigned_by=template.assigned_by,
                            attachments=tuple(template.attachments),
                        ))
                    except SQLAlchemyError as exc:
                        logger.warning("Master for %r / %s not stored: %s", template.title, assignee_id, exc)
                        errors.append(GenerationError(
                            index, template.title, assignee_id, "PERSISTENCE_ERROR", None, str(exc),
                        ))
                        continue

                planned.append(_PlannedPair(
                    template_index=index,
                    series_id=series_id,
                    assignee_id=assignee_id,
                    title=template.title,
                    forever=template.rule.forever,
                    instances=build_instances(dates, template, series_id, assignee_id, company_id),
                ))

        batch = [instance for pair in planned for instance in pair.instances]
        result = self._instances.bulk_insert(batch)
        if result.failed_count:
            logger.warning("%d of %d instances were not written", result.failed_count, len(batch))

        planned = self._drop_unwritten(planned, result.inserted, errors)
        series_ids = [pair.series_id for pair in planned if pair.series_id is not None]
        for pair in planned:
            if pair.forever and pair.series_id is not None:
                self._horizon.reconcile(pair.series_id)

        if self._dispatcher is not None:
            for pair in planned:
                self._dispatcher.dispatch(NotificationEvent(
                    assignee_id=pair.assignee_id,
                    series_id=pair.series_id,
                    title=pair.title,
                    due_date=pair.instances[0].due_date,
                ))

        if self._counts is not None:
            self._counts.invalidate(company_id)

        logger.info(
            "Generated %d instances across %d series for company %s (%d errors, %d write failures)",
            result.inserted_count,
            len(series_ids),
            company_id,
            len(errors),
            result.failed_count,
        )
        return GenerationResult(
            created_count=result.inserted_count,
            series_ids=series_ids,
            errors=errors,
            failed_count=result.failed_count,
        )

    def _drop_unwritten(
        self,
        planned: list[_PlannedPair],
        inserted: list[TaskInstanceEntity],
        errors: list[GenerationError],
    ) -> list[_PlannedPair]:
        """Pairs with at least one stored instance; the rest become errors."""
        written = {(item.series_id, item.assigned_to, item.title) for item in inserted}
        kept = []
        for pair in planned:
            if (pair.series_id, pair.assignee_id, pair.title) in written:
                kept.append(pair)
                continue
            if pair.series_id is not None:
                self._masters.delete(pair.series_id)
            errors.append(GenerationError(
                pair.template_index, pair.title, pair.assignee_id, "PERSISTENCE_ERROR", None,
                "no instance could be written",
            ))
        return kept
