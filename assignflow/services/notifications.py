from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass
from datetime import date
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationEvent:
    assignee_id: str
    series_id: str | None
    title: str
    due_date: date


class Notifier(Protocol):
    def notify(self, event: NotificationEvent) -> None: ...


class LoggingNotifier:
    def notify(self, event: NotificationEvent) -> None:
        logger.info(
            "Assigned %r to %s (series %s, first due %s)",
            event.title,
            event.assignee_id,
            event.series_id,
            event.due_date.isoformat(),
        )


class NotificationDispatcher:
    """Hands events to a notifier on a worker thread and never waits for them.

    A failing notifier is logged and otherwise ignored; generation results do
    not depend on delivery.
    """

    def __init__(
        self,
        notifier: Notifier,
        executor: concurrent.futures.Executor | None = None,
        max_workers: int = 2,
    ) -> None:
        self._notifier = notifier
        self._executor = executor or concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="assignflow-notify"
        )

    def dispatch(self, event: NotificationEvent) -> concurrent.futures.Future | None:
        try:
            return self._executor.submit(self._deliver, event)
        except RuntimeError:
            logger.exception("Notification executor unavailable, dropping event for %s", event.assignee_id)
            return None

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _deliver(self, event: NotificationEvent) -> None:
        try:
            self._notifier.notify(event)
        except Exception:  # noqa: BLE001
            logger.exception("Notification to %s failed", event.assignee_id)
