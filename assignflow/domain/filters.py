from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from .enums import Pattern, TaskStatus


@dataclass(frozen=True)
class InstanceFilters:
    company_id: str | None = None
    series_id: str | None = None
    assigned_to: str | None = None
    pattern: Pattern | None = None
    statuses: tuple[TaskStatus, ...] = ()
    due_from: Optional[date] = None
    due_to: Optional[date] = None
    search: str | None = None
    include_deleted: bool = False
