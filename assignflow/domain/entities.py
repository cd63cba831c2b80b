from __future__ import annotations

import base64
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional, Union

from .enums import Pattern, Priority, TaskStatus
from .errors import ValidationError


@dataclass(frozen=True)
class RecurrenceRule:
    pattern: Pattern
    start_date: date
    end_date: Optional[date] = None
    forever: bool = False
    include_sunday: bool = True
    weekly_days: frozenset[int] = frozenset()
    monthly_day: int | None = None
    yearly_duration: int = 1
    week_off_days: frozenset[int] = frozenset()


@dataclass(frozen=True)
class ByPath:
    path: str


@dataclass(frozen=True)
class ByContent:
    content: bytes
    filename: str


Attachment = Union[ByPath, ByContent]


def resolve_attachment(raw: object) -> Attachment:
    """Turn caller input (a bare path or a mapping) into an Attachment variant.

    Called at the input boundary, see ``TaskTemplate.from_input``; everything
    past it handles only ``ByPath`` and ``ByContent``.
    """
    if isinstance(raw, (ByPath, ByContent)):
        return raw
    if isinstance(raw, str) and raw.strip():
        return ByPath(raw.strip())
    if isinstance(raw, dict):
        if raw.get("content") is not None and raw.get("filename"):
            content = raw["content"]
            if isinstance(content, str):
                content = content.encode("utf-8")
            return ByContent(bytes(content), str(raw["filename"]))
        if raw.get("path"):
            return ByPath(str(raw["path"]))
    raise ValidationError("attachments", f"unsupported attachment {raw!r}")


def attachment_to_dict(attachment: Attachment) -> dict:
    if isinstance(attachment, ByPath):
        return {"kind": "path", "path": attachment.path}
    return {
        "kind": "content",
        "filename": attachment.filename,
        "content": base64.b64encode(attachment.content).decode("ascii"),
    }


def attachment_from_dict(data: dict) -> Attachment:
    if data["kind"] == "path":
        return ByPath(data["path"])
    return ByContent(base64.b64decode(data["content"]), data["filename"])


@dataclass(frozen=True)
class TaskTemplate:
    title: str
    rule: RecurrenceRule
    description: str = ""
    priority: Priority = Priority.NORMAL
    assigned_by: str | None = None
    attachments: tuple[Attachment, ...] = ()

    @classmethod
    def from_input(
        cls,
        title: str,
        rule: RecurrenceRule,
        *,
        description: str | None = None,
        priority: Priority | str = Priority.NORMAL,
        assigned_by: str | None = None,
        attachments: Iterable[object] = (),
    ) -> TaskTemplate:
        """Template from caller input; raw attachments are resolved here, once."""
        if not title or not title.strip():
            raise ValidationError("title", "is required")
        try:
            priority = Priority(priority)
        except ValueError:
            raise ValidationError("priority", f"unknown priority {priority!r}") from None
        return cls(
            title=title.strip(),
            rule=rule,
            description=description or "",
            priority=priority,
            assigned_by=assigned_by,
            attachments=tuple(resolve_attachment(item) for item in attachments),
        )


@dataclass(frozen=True)
class MasterSeriesEntity:
    series_id: str
    rule: RecurrenceRule
    title: str
    description: str
    priority: Priority
    company_id: str
    assigned_to: str
    assigned_by: str | None
    attachments: tuple[Attachment, ...] = ()
    is_active: bool = True
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    auto_delete_at: Optional[datetime] = None
    regenerating: bool = False
    successor_series_id: str | None = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class TaskInstanceEntity:
    id: int | None
    series_id: str | None
    sequence_number: int | None
    due_date: date
    title: str
    description: str
    pattern: Pattern
    priority: Priority
    company_id: str
    assigned_to: str
    assigned_by: str | None
    status: TaskStatus = TaskStatus.PENDING
    attachments: tuple[Attachment, ...] = ()
    completed_at: Optional[datetime] = None
    completion_remarks: str | None = None
    rejected_at: Optional[datetime] = None
    rejection_remarks: str | None = None
    is_active: bool = True
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    auto_delete_at: Optional[datetime] = None


@dataclass(frozen=True)
class BulkWriteFailure:
    series_id: str | None
    sequence_number: int | None
    error: str


@dataclass(frozen=True)
class BulkWriteResult:
    inserted: list[TaskInstanceEntity] = field(default_factory=list)
    failures: list[BulkWriteFailure] = field(default_factory=list)

    @property
    def inserted_count(self) -> int:
        return len(self.inserted)

    @property
    def failed_count(self) -> int:
        return len(self.failures)
