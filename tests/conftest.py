from __future__ import annotations

import concurrent.futures
import os
from datetime import date

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite://")

from sqlalchemy.orm import sessionmaker  # noqa: E402

from assignflow.domain.entities import RecurrenceRule, TaskTemplate  # noqa: E402
from assignflow.domain.enums import Pattern  # noqa: E402
from assignflow.infra import models  # noqa: E402,F401
from assignflow.infra.db import Base, build_engine  # noqa: E402
from assignflow.infra.repository import InstanceRepository, MasterSeriesRepository  # noqa: E402
from assignflow.services.pending_counts import PendingCountsService  # noqa: E402


class DictCache:
    """Deterministic counts cache: no expiry, records invalidations."""

    def __init__(self) -> None:
        self.data: dict[str, dict[str, int]] = {}
        self.invalidated: list[str] = []

    def get(self, key: str) -> dict[str, int] | None:
        return self.data.get(key)

    def set(self, key: str, value: dict[str, int]) -> None:
        self.data[key] = value

    def invalidate(self, key: str) -> None:
        self.invalidated.append(key)
        self.data.pop(key, None)


class InlineExecutor(concurrent.futures.Executor):
    """Runs submitted work on the calling thread."""

    def submit(self, fn, /, *args, **kwargs):
        future: concurrent.futures.Future = concurrent.futures.Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:  # noqa: BLE001
            future.set_exception(exc)
        return future


class RecordingNotifier:
    def __init__(self) -> None:
        self.events = []

    def notify(self, event) -> None:
        self.events.append(event)


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()


@pytest.fixture
def masters(session_factory) -> MasterSeriesRepository:
    return MasterSeriesRepository(session_factory)


@pytest.fixture
def instances(session_factory) -> InstanceRepository:
    return InstanceRepository(session_factory)


@pytest.fixture
def cache() -> DictCache:
    return DictCache()


@pytest.fixture
def counts(instances, cache) -> PendingCountsService:
    return PendingCountsService(instances, cache)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def inline_executor() -> InlineExecutor:
    return InlineExecutor()


def make_rule(pattern: Pattern, start: date, end: date | None = None, **kwargs) -> RecurrenceRule:
    return RecurrenceRule(pattern=pattern, start_date=start, end_date=end, **kwargs)


def make_template(title: str, rule: RecurrenceRule, **kwargs) -> TaskTemplate:
    return TaskTemplate(title=title, rule=rule, **kwargs)
