from __future__ import annotations

from datetime import date, datetime

import click

from assignflow.config import SETTINGS
from assignflow.domain.entities import RecurrenceRule, TaskTemplate
from assignflow.domain.enums import Pattern, Priority
from assignflow.domain.errors import EngineError
from assignflow.domain.recurrence import expand, rule_window, validate_rule
from assignflow.infra.db import init_db
from assignflow.infra.logging import setup_logging
from assignflow.infra.repository import InstanceRepository, MasterSeriesRepository
from assignflow.services.generation_service import BulkGenerationService
from assignflow.services.horizon_service import HorizonService
from assignflow.services.notifications import LoggingNotifier, NotificationDispatcher
from assignflow.services.reassign_service import ReassignService
from assignflow.services.recycle_service import RecycleService
from assignflow.services.reschedule_service import RescheduleService
from assignflow.services.task_service import TaskService


class _DateParam(click.ParamType):
    name = "date"

    def convert(self, value, param, ctx):
        if value is None or isinstance(value, date):
            return value
        text = str(value).strip().lower()
        if text == "today":
            return date.today()
        try:
            return datetime.strptime(text, "%Y-%m-%d").date()
        except ValueError:
            self.fail("Expected YYYY-MM-DD or 'today'", param, ctx)


class _WeekdaysParam(click.ParamType):
    """Comma separated weekdays, 0 = Sunday."""

    name = "weekdays"

    def convert(self, value, param, ctx):
        if isinstance(value, frozenset):
            return value
        try:
            return frozenset(int(part) for part in str(value).split(",") if part.strip())
        except ValueError:
            self.fail("Expected comma separated numbers 0-6, e.g. 1,3,5", param, ctx)


_DATE = _DateParam()
_WEEKDAYS = _WeekdaysParam()


def _repositories() -> tuple[MasterSeriesRepository, InstanceRepository]:
    init_db()
    return MasterSeriesRepository(), InstanceRepository()


@click.group()
@click.option("--log-level", default=None, help="Overrides LOG_LEVEL.")
@click.option("--log-file/--no-log-file", default=True, help="Also write the rotating log file.")
def cli(log_level: str | None, log_file: bool) -> None:
    """Recurring task generation and maintenance."""
    setup_logging(log_level, to_file=log_file)


def _rule_options(command):
    options = [
        click.option("--pattern", type=click.Choice([p.value for p in Pattern]), required=True),
        click.option("--start", "start_date", type=_DATE, required=True),
        click.option("--end", "end_date", type=_DATE, default=None),
        click.option("--forever", is_flag=True),
        click.option("--include-sunday/--exclude-sunday", default=True),
        click.option("--weekly-days", type=_WEEKDAYS, default=""),
        click.option("--monthly-day", type=int, default=None),
        click.option("--yearly-duration", type=int, default=1, show_default=True),
        click.option("--week-off", type=_WEEKDAYS, default=""),
    ]
    for option in reversed(options):
        command = option(command)
    return command


def _build_rule(
    pattern, start_date, end_date, forever, include_sunday, weekly_days, monthly_day, yearly_duration, week_off
) -> RecurrenceRule:
    return RecurrenceRule(
        pattern=Pattern(pattern),
        start_date=start_date,
        end_date=end_date,
        forever=forever,
        include_sunday=include_sunday,
        weekly_days=weekly_days,
        monthly_day=monthly_day,
        yearly_duration=yearly_duration,
        week_off_days=week_off,
    )


@cli.command("expand")
@_rule_options
def expand_command(**rule_options) -> None:
    """Print the due dates a rule produces, without touching the database."""
    rule = _build_rule(**rule_options)
    try:
        validate_rule(rule)
        dates = expand(rule, *rule_window(rule, SETTINGS.forever_horizon_years))
    except EngineError as exc:
        raise click.ClickException(f"{exc.code}: {exc}") from exc
    for day in dates:
        click.echo(f"{day.isoformat()} {day.strftime('%a')}")
    click.echo(f"{len(dates)} occurrence(s)")


@cli.command("generate")
@_rule_options
@click.option("--title", required=True)
@click.option("--description", default="")
@click.option("--priority", type=click.Choice([p.value for p in Priority]), default=Priority.NORMAL.value)
@click.option("--company", "company_id", required=True)
@click.option("--assignee", "assignees", multiple=True, required=True)
@click.option("--assigned-by", default=None)
@click.option("--attach", "attachments", multiple=True, help="Path of a file to attach; repeatable.")
def generate_command(title, description, priority, company_id, assignees, assigned_by, attachments, **rule_options):
    """Create series and instances of one template for each assignee."""
    try:
        template = TaskTemplate.from_input(
            title,
            _build_rule(**rule_options),
            description=description,
            priority=priority,
            assigned_by=assigned_by,
            attachments=attachments,
        )
    except EngineError as exc:
        raise click.ClickException(f"{exc.code}: {exc}") from exc

    masters, instances = _repositories()
    dispatcher = NotificationDispatcher(LoggingNotifier(), max_workers=SETTINGS.notification_workers)
    try:
        result = BulkGenerationService(masters, instances, dispatcher=dispatcher).generate(
            [(template, list(assignees))], company_id
        )
    except EngineError as exc:
        raise click.ClickException(f"{exc.code}: {exc}") from exc
    finally:
        dispatcher.shutdown(wait=True)

    for series_id in result.series_ids:
        click.echo(series_id)
    for error in result.errors:
        click.echo(f"{error.assignee_id or error.title}: {error.code}: {error.message}", err=True)
    click.echo(f"{result.created_count} instance(s) created, {result.failed_count} failed")
    if result.errors:
        raise SystemExit(1)


@cli.command("reassign")
@click.argument("series_ids", nargs=-1, required=True)
@click.option("--without-attachments", is_flag=True)
def reassign_command(series_ids: tuple[str, ...], without_attachments: bool) -> None:
    """Roll forever series into their next one-year period."""
    masters, instances = _repositories()
    dispatcher = NotificationDispatcher(LoggingNotifier(), max_workers=SETTINGS.notification_workers)
    service = ReassignService(masters, instances, dispatcher=dispatcher)
    outcome = service.reassign_many(series_ids, include_attachments=not without_attachments)
    dispatcher.shutdown(wait=True)

    for result in outcome.results:
        click.echo(
            f"{result.series_id} -> {result.new_series_id}: {result.created_count} created "
            f"({result.new_start.isoformat()}..{result.new_end.isoformat()})"
        )
    for series_id, message in outcome.failures.items():
        click.echo(f"{series_id}: {message}", err=True)
    if outcome.failures:
        raise SystemExit(1)


@cli.command("reconcile")
def reconcile_command() -> None:
    """Correct stored end dates of forever series from their instances."""
    masters, instances = _repositories()
    corrected = HorizonService(masters, instances).reconcile_all()
    click.echo(f"{corrected} series corrected")


@cli.command("resume-reschedules")
def resume_command() -> None:
    """Finish reschedules that were interrupted midway."""
    masters, instances = _repositories()
    results = RescheduleService(masters, instances).resume_interrupted()
    for result in results:
        click.echo(f"{result.series_id}: {result.instance_count} instances")
    click.echo(f"{len(results)} series resumed")


@cli.command("purge-expired")
def purge_command() -> None:
    """Hard delete recycle bin entries past their retention deadline."""
    masters, instances = _repositories()
    report = RecycleService(masters, instances).purge_expired()
    click.echo(f"Purged {report.series} series and {report.instances} instances")


@cli.command("mark-overdue")
@click.option("--today", type=_DATE, default=None)
def mark_overdue_command(today: date | None) -> None:
    """Flag late non-daily instances as overdue."""
    _, instances = _repositories()
    updated = TaskService(instances).mark_overdue(today)
    click.echo(f"{updated} instances marked overdue")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
