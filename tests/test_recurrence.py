from __future__ import annotations

from datetime import date

import pytest

from assignflow.domain.enums import Pattern, Weekday
from assignflow.domain.errors import ValidationError
from assignflow.domain.recurrence import (
    add_months,
    day_of_week,
    expand,
    expand_rule,
    pin_window,
    rule_window,
    shift_back,
    validate_rule,
)
from conftest import make_rule


def test_weekly_mon_wed_fri_over_two_weeks() -> None:
    rule = make_rule(Pattern.WEEKLY, date(2024, 1, 1), date(2024, 1, 14), weekly_days=frozenset({1, 3, 5}))

    assert expand(rule, date(2024, 1, 1), date(2024, 1, 14)) == [
        date(2024, 1, 1),
        date(2024, 1, 3),
        date(2024, 1, 5),
        date(2024, 1, 8),
        date(2024, 1, 10),
        date(2024, 1, 12),
    ]


def test_weekly_week_off_removes_selected_day() -> None:
    rule = make_rule(
        Pattern.WEEKLY,
        date(2024, 1, 1),
        date(2024, 1, 14),
        weekly_days=frozenset({1, 3}),
        week_off_days=frozenset({3}),
    )

    dates = expand(rule, date(2024, 1, 1), date(2024, 1, 14))

    assert dates == [date(2024, 1, 1), date(2024, 1, 8)]


def test_monthly_31_in_april_is_april_30() -> None:
    rule = make_rule(Pattern.MONTHLY, date(2024, 4, 1), date(2024, 4, 30), monthly_day=31)

    assert expand(rule, date(2024, 4, 1), date(2024, 4, 30)) == [date(2024, 4, 30)]


@pytest.mark.parametrize("year, last_day", [(2023, 28), (2024, 29)])
def test_monthly_31_in_february_is_last_day(year: int, last_day: int) -> None:
    rule = make_rule(Pattern.MONTHLY, date(year, 2, 1), date(year, 2, last_day), monthly_day=31)

    assert expand(rule, date(year, 2, 1), date(year, 2, last_day)) == [date(year, 2, last_day)]


def test_monthly_sunday_shifts_to_saturday() -> None:
    # 2024-09-15 is a Sunday
    rule = make_rule(
        Pattern.MONTHLY, date(2024, 9, 1), date(2024, 9, 30), monthly_day=15, include_sunday=False
    )

    assert expand(rule, date(2024, 9, 1), date(2024, 9, 30)) == [date(2024, 9, 14)]


def test_monthly_shift_skips_week_off_saturday_too() -> None:
    rule = make_rule(
        Pattern.MONTHLY,
        date(2024, 9, 1),
        date(2024, 9, 30),
        monthly_day=15,
        include_sunday=False,
        week_off_days=frozenset({Weekday.SATURDAY}),
    )

    assert expand(rule, date(2024, 9, 1), date(2024, 9, 30)) == [date(2024, 9, 13)]


def test_monthly_shift_never_crosses_into_previous_month() -> None:
    # 2024-09-01 is a Sunday, shifting would land in August
    rule = make_rule(
        Pattern.MONTHLY, date(2024, 8, 1), date(2024, 10, 31), monthly_day=1, include_sunday=False
    )

    assert expand(rule, date(2024, 9, 1), date(2024, 9, 30)) == []
    assert expand(rule, date(2024, 8, 1), date(2024, 10, 31)) == [date(2024, 8, 1), date(2024, 10, 1)]


def test_daily_without_sunday_never_returns_sunday() -> None:
    rule = make_rule(Pattern.DAILY, date(2024, 1, 1), date(2024, 3, 31), include_sunday=False)

    dates = expand(rule, date(2024, 1, 1), date(2024, 3, 31))

    assert dates
    assert all(day_of_week(day) != Weekday.SUNDAY for day in dates)


def test_week_off_days_never_returned() -> None:
    off = frozenset({Weekday.TUESDAY, Weekday.THURSDAY})
    rules = [
        make_rule(Pattern.DAILY, date(2024, 1, 1), date(2024, 6, 30), week_off_days=off),
        make_rule(Pattern.MONTHLY, date(2024, 1, 1), date(2024, 12, 31), monthly_day=2, week_off_days=off),
        make_rule(Pattern.QUARTERLY, date(2024, 1, 2), week_off_days=off),
        make_rule(Pattern.YEARLY, date(2024, 1, 2), yearly_duration=5, week_off_days=off),
    ]

    for rule in rules:
        dates = expand_rule(rule)
        assert dates, rule.pattern
        assert all(day_of_week(day) not in off for day in dates), rule.pattern


def test_quarterly_returns_four_dates_ignoring_range_end() -> None:
    rule = make_rule(Pattern.QUARTERLY, date(2024, 1, 15))

    dates = expand(rule, date(2024, 1, 15), date(2024, 1, 15))

    assert dates == [date(2024, 1, 15), date(2024, 4, 15), date(2024, 7, 15), date(2024, 10, 15)]


def test_quarterly_shifted_dates_stay_near_their_anchor() -> None:
    rule = make_rule(Pattern.QUARTERLY, date(2024, 1, 15), week_off_days=frozenset({Weekday.MONDAY}))
    nominal = [add_months(date(2024, 1, 15), 3 * index) for index in range(4)]

    dates = expand(rule, date(2024, 1, 15), date(2024, 12, 31))

    assert dates == [date(2024, 1, 14), date(2024, 4, 14), date(2024, 7, 14), date(2024, 10, 15)]
    for day, anchor in zip(dates, nominal):
        assert 0 <= (anchor - day).days < 7


def test_forever_yearly_returns_duration_dates_and_clamps_leap_day() -> None:
    rule = make_rule(Pattern.YEARLY, date(2024, 2, 29), forever=True, yearly_duration=3)

    dates = expand(rule, date(2024, 2, 29), date(2024, 3, 1))

    assert dates == [date(2024, 2, 29), date(2025, 2, 28), date(2026, 2, 28)]


def test_one_time_returns_start() -> None:
    rule = make_rule(Pattern.ONE_TIME, date(2024, 5, 6))

    assert expand_rule(rule) == [date(2024, 5, 6)]


def test_range_start_after_end_rejected() -> None:
    rule = make_rule(Pattern.DAILY, date(2024, 1, 1), date(2024, 1, 31))

    with pytest.raises(ValidationError) as info:
        expand(rule, date(2024, 2, 1), date(2024, 1, 1))

    assert info.value.parameter == "range"


def test_shift_back_walks_over_consecutive_excluded_days() -> None:
    # 2024-01-07 is a Sunday
    excluded = frozenset({Weekday.SUNDAY, Weekday.SATURDAY, Weekday.FRIDAY})

    assert shift_back(date(2024, 1, 7), excluded) == date(2024, 1, 4)


@pytest.mark.parametrize(
    "rule, parameter",
    [
        (make_rule(Pattern.WEEKLY, date(2024, 1, 1), date(2024, 2, 1)), "weekly_days"),
        (
            make_rule(
                Pattern.WEEKLY,
                date(2024, 1, 1),
                date(2024, 2, 1),
                weekly_days=frozenset({0, 1}),
                include_sunday=False,
            ),
            "weekly_days",
        ),
        (make_rule(Pattern.WEEKLY, date(2024, 1, 1), date(2024, 2, 1), weekly_days=frozenset({7})), "weekly_days"),
        (make_rule(Pattern.MONTHLY, date(2024, 1, 1), date(2024, 2, 1), monthly_day=32), "monthly_day"),
        (make_rule(Pattern.MONTHLY, date(2024, 1, 1), date(2024, 2, 1)), "monthly_day"),
        (make_rule(Pattern.YEARLY, date(2024, 1, 1), yearly_duration=0), "yearly_duration"),
        (make_rule(Pattern.DAILY, date(2024, 1, 1)), "end_date"),
        (make_rule(Pattern.DAILY, date(2024, 2, 1), date(2024, 1, 1)), "end_date"),
        (make_rule(Pattern.DAILY, date(2024, 1, 1), date(2024, 2, 1), week_off_days=frozenset(range(7))), "week_off_days"),
        (make_rule(Pattern.ONE_TIME, date(2024, 1, 7), include_sunday=False), "start_date"),
    ],
)
def test_validate_rule_rejects(rule, parameter: str) -> None:
    with pytest.raises(ValidationError) as info:
        validate_rule(rule)

    assert info.value.parameter == parameter
    assert info.value.code == "VALIDATION_ERROR"


def test_validate_rule_accepts_forever_without_end() -> None:
    validate_rule(make_rule(Pattern.DAILY, date(2024, 1, 1), forever=True))


def test_rule_window_forever_uses_horizon() -> None:
    daily = make_rule(Pattern.DAILY, date(2024, 1, 1), forever=True)
    yearly = make_rule(Pattern.YEARLY, date(2024, 1, 1), forever=True, yearly_duration=2)

    assert rule_window(daily) == (date(2024, 1, 1), date(2025, 1, 1))
    assert rule_window(daily, horizon_years=2) == (date(2024, 1, 1), date(2026, 1, 1))
    assert rule_window(yearly) == (date(2024, 1, 1), date(2026, 1, 1))


def test_rule_window_count_based_without_end() -> None:
    quarterly = make_rule(Pattern.QUARTERLY, date(2024, 1, 31))
    yearly = make_rule(Pattern.YEARLY, date(2024, 3, 1), yearly_duration=3)

    assert rule_window(quarterly) == (date(2024, 1, 31), date(2024, 10, 31))
    assert rule_window(yearly) == (date(2024, 3, 1), date(2024, 3, 1))


def test_bounded_yearly_occurs_once_within_its_end_date() -> None:
    rule = make_rule(Pattern.YEARLY, date(2024, 3, 1), date(2024, 12, 31), yearly_duration=3)

    dates = expand_rule(rule)

    assert dates == [date(2024, 3, 1)]
    assert all(day <= rule.end_date for day in dates)


def test_pin_window_stores_generated_range() -> None:
    forever = make_rule(Pattern.WEEKLY, date(2024, 1, 1), forever=True, weekly_days=frozenset({1}))
    quarterly = make_rule(Pattern.QUARTERLY, date(2024, 1, 31))
    yearly = make_rule(Pattern.YEARLY, date(2024, 3, 1), yearly_duration=3)
    bounded = make_rule(Pattern.DAILY, date(2024, 1, 1), date(2024, 1, 31))

    assert pin_window(forever).end_date == date(2025, 1, 1)
    assert pin_window(quarterly).end_date == date(2024, 10, 31)
    assert pin_window(yearly).end_date == date(2024, 3, 1)
    assert pin_window(bounded) is bounded
