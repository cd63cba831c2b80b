from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime

from assignflow.domain.entities import ByContent, ByPath
from assignflow.domain.enums import Pattern, TaskStatus
from assignflow.domain.filters import InstanceFilters
from assignflow.services.instance_builder import build_instances
from conftest import make_rule, make_template


def _weekly_instances(series_id: str = "s1", assignee: str = "alice"):
    rule = make_rule(Pattern.WEEKLY, date(2024, 1, 1), date(2024, 1, 14), weekly_days=frozenset({1, 3, 5}))
    dates = [date(2024, 1, 1), date(2024, 1, 3), date(2024, 1, 5)]
    return build_instances(dates, make_template("Standup", rule), series_id, assignee, "acme")


def test_bulk_insert_writes_all_rows(instances) -> None:
    result = instances.bulk_insert(_weekly_instances())

    assert result.inserted_count == 3
    assert result.failed_count == 0
    assert all(item.id is not None for item in result.inserted)
    assert [item.sequence_number for item in instances.list_by_series("s1")] == [1, 2, 3]


def test_bulk_insert_keeps_going_past_duplicates(instances) -> None:
    first = _weekly_instances()
    instances.bulk_insert(first[:1])
    extra = replace(first[0], sequence_number=4, due_date=date(2024, 1, 8))

    result = instances.bulk_insert(first + [extra])

    assert result.inserted_count == 3
    assert result.failed_count == 1
    assert result.failures[0].series_id == "s1"
    assert result.failures[0].sequence_number == 1
    assert len(instances.list_by_series("s1")) == 4


def test_one_time_instances_do_not_collide(instances) -> None:
    rule = make_rule(Pattern.ONE_TIME, date(2024, 1, 2))
    built = build_instances([date(2024, 1, 2)], make_template("Call", rule), None, "alice", "acme")

    result = instances.bulk_insert(built + built)

    assert result.inserted_count == 2
    assert all(item.sequence_number is None for item in result.inserted)


def test_attachments_survive_storage(instances) -> None:
    rule = make_rule(Pattern.ONE_TIME, date(2024, 1, 2))
    template = make_template(
        "Report",
        rule,
        attachments=(ByPath("/files/report.pdf"), ByContent(b"\x00\x01data", "raw.bin")),
    )
    built = build_instances([date(2024, 1, 2)], template, None, "alice", "acme")

    stored = instances.get(instances.bulk_insert(built).inserted[0].id)

    assert stored.attachments == (ByPath("/files/report.pdf"), ByContent(b"\x00\x01data", "raw.bin"))


def test_max_due_date_ignores_deleted(instances) -> None:
    inserted = instances.bulk_insert(_weekly_instances()).inserted
    instances.update(inserted[-1].id, {"is_deleted": True, "is_active": False, "deleted_at": datetime(2024, 1, 2)})

    assert instances.max_due_date("s1") == date(2024, 1, 3)
    assert instances.max_due_date("unknown") is None


def test_list_instances_filters(instances) -> None:
    instances.bulk_insert(_weekly_instances("s1", "alice") + _weekly_instances("s2", "bob"))

    by_assignee = instances.list_instances(InstanceFilters(company_id="acme", assigned_to="bob"))
    by_range = instances.list_instances(InstanceFilters(due_from=date(2024, 1, 3), due_to=date(2024, 1, 3)))
    by_search = instances.list_instances(InstanceFilters(search="stand"))

    assert {item.series_id for item in by_assignee} == {"s2"}
    assert [item.due_date for item in by_range] == [date(2024, 1, 3), date(2024, 1, 3)]
    assert len(by_search) == 6


def test_update_by_series_limited_to_statuses(instances) -> None:
    inserted = instances.bulk_insert(_weekly_instances()).inserted
    instances.update(inserted[0].id, {"status": TaskStatus.COMPLETED.value})

    moved = instances.update_by_series("s1", {"assigned_to": "carol"}, statuses=(TaskStatus.PENDING,))

    assert moved == 2
    assignees = [item.assigned_to for item in instances.list_by_series("s1")]
    assert assignees == ["alice", "carol", "carol"]


def test_count_by_pattern_counts_live_rows_only(instances) -> None:
    inserted = instances.bulk_insert(_weekly_instances()).inserted
    instances.update(inserted[0].id, {"is_deleted": True, "is_active": False})

    counts = instances.count_by_pattern("acme", (TaskStatus.PENDING,))

    assert counts == {"weekly": 2}


def test_mark_overdue_skips_daily(instances) -> None:
    daily_rule = make_rule(Pattern.DAILY, date(2024, 1, 1), date(2024, 1, 2))
    daily = build_instances(
        [date(2024, 1, 1), date(2024, 1, 2)], make_template("Sweep", daily_rule), "d1", "alice", "acme"
    )
    instances.bulk_insert(_weekly_instances() + daily)

    updated = instances.mark_overdue(date(2024, 1, 4), skip_patterns=(Pattern.DAILY,))

    assert updated == 2
    overdue = instances.list_instances(InstanceFilters(statuses=(TaskStatus.OVERDUE,)))
    assert {item.series_id for item in overdue} == {"s1"}


def test_master_round_trip(masters) -> None:
    from assignflow.domain.entities import MasterSeriesEntity
    from assignflow.domain.enums import Priority

    rule = make_rule(
        Pattern.WEEKLY,
        date(2024, 1, 1),
        date(2024, 3, 1),
        weekly_days=frozenset({1, 4}),
        week_off_days=frozenset({6}),
    )
    master = MasterSeriesEntity(
        series_id="m1",
        rule=rule,
        title="Inventory",
        description="count shelves",
        priority=Priority.HIGH,
        company_id="acme",
        assigned_to="alice",
        assigned_by="boss",
    )

    stored = masters.upsert(master)
    changed = masters.update("m1", {"successor_series_id": "m2"})

    assert stored.rule == rule
    assert stored.priority is Priority.HIGH
    assert stored.created_at is not None
    assert changed.successor_series_id == "m2"
    assert masters.delete("m1") is True
    assert masters.get("m1") is None


def test_shift_pending_one_time_filters_rows(instances) -> None:
    rule = make_rule(Pattern.ONE_TIME, date(2024, 1, 2))
    calls = build_instances([date(2024, 1, 2)], make_template("Call", rule), None, "alice", "acme")
    one_time = instances.bulk_insert(calls + calls + calls).inserted
    weekly = instances.bulk_insert(_weekly_instances()).inserted
    instances.update(one_time[1].id, {"status": TaskStatus.COMPLETED.value})
    instances.update(one_time[2].id, {"is_deleted": True, "is_active": False})
    ids = [item.id for item in one_time] + [weekly[0].id]

    assert instances.shift_pending_one_time(ids, "other-co", "alice", "bob") == 0
    assert instances.shift_pending_one_time(ids, "acme", "alice", "bob") == 1
    assert instances.get(one_time[0].id).assigned_to == "bob"
    assert instances.get(one_time[1].id).assigned_to == "alice"
    assert instances.get(weekly[0].id).assigned_to == "alice"
