from __future__ import annotations

import uuid
from datetime import date

from assignflow.domain.entities import MasterSeriesEntity, RecurrenceRule, TaskInstanceEntity, TaskTemplate
from assignflow.domain.enums import TaskStatus


def mint_series_id() -> str:
    return uuid.uuid4().hex


def build_instances(
    dates: list[date],
    template: TaskTemplate,
    series_id: str | None,
    assigned_to: str,
    company_id: str,
) -> list[TaskInstanceEntity]:
    """One pending instance per date, numbered from 1 in date order.

    One-time templates pass ``series_id=None``; their instance carries no
    sequence number either.
    """
    return [
        TaskInstanceEntity(
            id=None,
            series_id=series_id,
            sequence_number=index if series_id is not None else None,
            due_date=due_date,
            title=template.title,
            description=template.description,
            pattern=template.rule.pattern,
            priority=template.priority,
            company_id=company_id,
            assigned_to=assigned_to,
            assigned_by=template.assigned_by,
            status=TaskStatus.PENDING,
            attachments=tuple(template.attachments),
        )
        for index, due_date in enumerate(dates, start=1)
    ]


def template_from_master(master: MasterSeriesEntity, rule: RecurrenceRule | None = None) -> TaskTemplate:
    return TaskTemplate(
        title=master.title,
        rule=rule or master.rule,
        description=master.description,
        priority=master.priority,
        assigned_by=master.assigned_by,
        attachments=master.attachments,
    )
