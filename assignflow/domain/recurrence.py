"""Recurrence expansion.

Pure calendar arithmetic: a RecurrenceRule plus a date range in, an ordered
list of civil dates out. Weekdays are numbered with Sunday as 0.

Excluded days (week-off days, and Sunday unless the rule includes it) are
never emitted. Daily and weekly rules skip them; anchored patterns (monthly,
quarterly, yearly) move an excluded occurrence backward to the nearest
allowed day.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta

from .entities import RecurrenceRule
from .enums import Pattern, Weekday
from .errors import ValidationError

QUARTERS_PER_BLOCK = 4
MONTHS_PER_QUARTER = 3
ALL_WEEKDAYS = frozenset(int(day) for day in Weekday)


def day_of_week(day: date) -> int:
    return day.isoweekday() % 7


def excluded_days(rule: RecurrenceRule) -> frozenset[int]:
    days = set(rule.week_off_days)
    if not rule.include_sunday:
        days.add(Weekday.SUNDAY)
    return frozenset(days)


def is_allowed(day: date, rule: RecurrenceRule) -> bool:
    return day_of_week(day) not in excluded_days(rule)


def validate_rule(rule: RecurrenceRule) -> None:
    try:
        pattern = Pattern(rule.pattern)
    except ValueError:
        raise ValidationError("pattern", f"unknown pattern {rule.pattern!r}") from None

    if rule.start_date is None:
        raise ValidationError("start_date", "is required")

    for name, days in (("weekly_days", rule.weekly_days), ("week_off_days", rule.week_off_days)):
        invalid = sorted(str(day) for day in days if not isinstance(day, int) or day not in ALL_WEEKDAYS)
        if invalid:
            raise ValidationError(name, f"weekdays must be 0..6, got {', '.join(invalid)}")

    if excluded_days(rule) >= ALL_WEEKDAYS:
        raise ValidationError("week_off_days", "excludes every day of the week")

    if pattern is Pattern.ONE_TIME:
        if not is_allowed(rule.start_date, rule):
            raise ValidationError("start_date", "falls on an excluded weekday")
        return

    if pattern is Pattern.WEEKLY:
        if not rule.weekly_days:
            raise ValidationError("weekly_days", "is required for weekly rules")
        if Weekday.SUNDAY in rule.weekly_days and not rule.include_sunday:
            raise ValidationError("weekly_days", "selects Sunday while include_sunday is false")

    if pattern is Pattern.MONTHLY:
        if rule.monthly_day is None or not 1 <= rule.monthly_day <= 31:
            raise ValidationError("monthly_day", f"must be 1..31, got {rule.monthly_day!r}")

    if pattern is Pattern.YEARLY and rule.yearly_duration < 1:
        raise ValidationError("yearly_duration", f"must be at least 1, got {rule.yearly_duration}")

    if rule.forever:
        return
    if rule.end_date is None:
        if pattern in (Pattern.QUARTERLY, Pattern.YEARLY):
            return
        raise ValidationError("end_date", "is required unless the rule is forever")
    if rule.end_date < rule.start_date:
        raise ValidationError("end_date", "is before start_date")


def rule_window(rule: RecurrenceRule, horizon_years: int = 1) -> tuple[date, date]:
    """Absolute date range a rule expands over.

    Forever rules get a provisional horizon: ``horizon_years`` from the start,
    or ``yearly_duration`` years for yearly rules.
    """
    start = rule.start_date
    if rule.pattern == Pattern.ONE_TIME:
        return start, start
    if rule.forever:
        years = rule.yearly_duration if rule.pattern == Pattern.YEARLY else horizon_years
        return start, add_years(start, years)
    if rule.end_date is not None:
        return start, rule.end_date
    if rule.pattern == Pattern.QUARTERLY:
        return start, add_months(start, MONTHS_PER_QUARTER * (QUARTERS_PER_BLOCK - 1))
    return start, start


def pin_window(rule: RecurrenceRule, horizon_years: int = 1) -> RecurrenceRule:
    """Rule as stored on a master: the end date is the last day of its window."""
    if rule.pattern == Pattern.ONE_TIME or (rule.end_date is not None and not rule.forever):
        return rule
    return replace(rule, end_date=rule_window(rule, horizon_years)[1])


def expand(rule: RecurrenceRule, range_start: date, range_end: date) -> list[date]:
    """Ordered, duplicate-free due dates of ``rule`` for the given range.

    Quarterly and yearly rules are count based: they anchor on ``range_start``
    and emit their fixed number of occurrences regardless of ``range_end``.
    Only forever yearly rules repeat; a bounded yearly rule occurs once.
    """
    if range_start > range_end:
        raise ValidationError("range", f"{range_start} is after {range_end}")

    pattern = Pattern(rule.pattern)
    if pattern is Pattern.ONE_TIME:
        return [range_start]
    if pattern is Pattern.DAILY:
        return _daily(rule, range_start, range_end)
    if pattern is Pattern.WEEKLY:
        return _weekly(rule, range_start, range_end)
    if pattern is Pattern.MONTHLY:
        return _monthly(rule, range_start, range_end)
    if pattern is Pattern.QUARTERLY:
        return _anchored(rule, [
            add_months(range_start, MONTHS_PER_QUARTER * index)
            for index in range(QUARTERS_PER_BLOCK)
        ])
    years = rule.yearly_duration if rule.forever else 1
    return _anchored(rule, [add_years(range_start, index) for index in range(years)])


def expand_rule(rule: RecurrenceRule, horizon_years: int = 1) -> list[date]:
    validate_rule(rule)
    return expand(rule, *rule_window(rule, horizon_years))


def shift_back(day: date, excluded: frozenset[int]) -> date:
    while day_of_week(day) in excluded:
        day -= timedelta(days=1)
    return day


def _days(range_start: date, range_end: date):
    current = range_start
    while current <= range_end:
        yield current
        current += timedelta(days=1)


def _daily(rule: RecurrenceRule, range_start: date, range_end: date) -> list[date]:
    excluded = excluded_days(rule)
    return [day for day in _days(range_start, range_end) if day_of_week(day) not in excluded]


def _weekly(rule: RecurrenceRule, range_start: date, range_end: date) -> list[date]:
    selected = frozenset(rule.weekly_days) - frozenset(rule.week_off_days)
    return [day for day in _days(range_start, range_end) if day_of_week(day) in selected]


def _monthly(rule: RecurrenceRule, range_start: date, range_end: date) -> list[date]:
    excluded = excluded_days(rule)
    dates = []
    year, month = range_start.year, range_start.month
    while (year, month) <= (range_end.year, range_end.month):
        target = date(year, month, min(rule.monthly_day, days_in_month(year, month)))
        if range_start <= target <= range_end:
            shifted = shift_back(target, excluded)
            # an occurrence pushed into the previous month is dropped, not moved
            if shifted.month == month and shifted >= range_start:
                dates.append(shifted)
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    return dates


def _anchored(rule: RecurrenceRule, nominal: list[date]) -> list[date]:
    excluded = excluded_days(rule)
    return sorted({shift_back(day, excluded) for day in nominal})


def add_months(base: date, months: int) -> date:
    year = base.year + (base.month - 1 + months) // 12
    month = (base.month - 1 + months) % 12 + 1
    day = min(base.day, days_in_month(year, month))
    return date(year, month, day)


def add_years(base: date, years: int) -> date:
    return add_months(base, 12 * years)


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - timedelta(days=1)).day
