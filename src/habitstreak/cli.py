"""Command line interface: the habit list view and its actions."""

from __future__ import annotations

import json
import queue
from pathlib import Path
from typing import Iterable

import click

from .config import BaseConfig
from .context import AppContext, create_app_context
from .logging_config import setup_logging
from .models.habit import Habit, habit_from_document, habit_to_document
from .scheduler import create_scheduler
from .services.streaks import longest_streak
from .services.tracker import HabitNotFoundError


def _render(habits: Iterable[Habit], app: AppContext) -> None:
    habits = list(habits)
    if not habits:
        click.echo("No habits yet. Add one with `habitstreak add NAME`.")
        return

    tz = app.config.timezone()
    click.echo(f"{'ID':<32}  {'NAME':<24} {'STREAK':>6} {'BEST':>5} {'TODAY':>5} {'DAYS':>5}")
    for habit in habits:
        click.echo(
            f"{habit.id:<32}  {habit.name[:24]:<24} {habit.streak:>6} "
            f"{longest_streak(habit.completion_dates, tz):>5} "
            f"{'yes' if habit.is_completed_today else 'no':>5} {habit.total_days:>5}"
        )


def _report_failures(app: AppContext) -> None:
    """Warn about rejected writes after one retry."""

    tracker = app.tracker
    tracker.flush()
    if not len(tracker.failures):
        return
    tracker.retry_failed_writes()
    for failure in tracker.failures.pending():
        click.secho(
            f"warning: could not {failure.operation} habit {failure.habit_id}: {failure.error}",
            fg="yellow",
            err=True,
        )


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Track daily habits and their streaks."""

    if ctx.obj is None:
        config = BaseConfig()
        setup_logging(config)
        ctx.obj = create_app_context(config)
        ctx.call_on_close(ctx.obj.close)


@cli.command("list")
@click.pass_obj
def list_habits(app: AppContext) -> None:
    """Show every habit with its current streak."""

    _render(app.tracker.load_habits(), app)
    _report_failures(app)


@cli.command("add")
@click.argument("name")
@click.option("--done", is_flag=True, default=False, help="Mark it completed today.")
@click.pass_obj
def add_habit(app: AppContext, name: str, done: bool) -> None:
    """Create a habit."""

    try:
        habit = app.tracker.create_habit(name, is_completed_today=done)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Added {habit.name} ({habit.id})")
    _report_failures(app)


@cli.command("toggle")
@click.argument("habit_id")
@click.pass_obj
def toggle_habit(app: AppContext, habit_id: str) -> None:
    """Mark a habit done today, or undo today's mark."""

    try:
        habit = app.tracker.toggle_completion(habit_id)
    except HabitNotFoundError as exc:
        raise click.ClickException(str(exc)) from exc
    state = "done" if habit.is_completed_today else "not done"
    click.echo(f"{habit.name}: {state} today, streak {habit.streak}")
    _report_failures(app)


@cli.command("rename")
@click.argument("habit_id")
@click.argument("name")
@click.pass_obj
def rename_habit(app: AppContext, habit_id: str, name: str) -> None:
    """Change a habit's display name."""

    try:
        habit = app.tracker.rename_habit(habit_id, name)
    except (HabitNotFoundError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Renamed {habit.id} to {habit.name}")
    _report_failures(app)


@cli.command("delete")
@click.argument("habit_id")
@click.confirmation_option(prompt="Delete this habit and its history?")
@click.pass_obj
def delete_habit(app: AppContext, habit_id: str) -> None:
    """Delete a habit."""

    try:
        deleted = app.tracker.delete_habit(habit_id)
    except HabitNotFoundError as exc:
        raise click.ClickException(str(exc)) from exc
    if deleted:
        click.echo(f"Deleted {habit_id}")
    _report_failures(app)


@cli.command("watch")
@click.option("--limit", type=int, default=None, help="Stop after this many redraws.")
@click.option(
    "--interval",
    type=float,
    default=30.0,
    show_default=True,
    help="Seconds between store polls when nothing changed locally.",
)
@click.pass_obj
def watch_habits(app: AppContext, limit: int | None, interval: float) -> None:
    """Redraw the list every time it changes."""

    scheduler = create_scheduler(app, auto_start=app.config.DAILY_REFRESH)
    subscription = app.tracker.subscribe()
    shown: list[Habit] | None = None
    redraws = 0
    try:
        while limit is None or redraws < limit:
            try:
                snapshot = subscription.get(timeout=interval)
            except queue.Empty:
                # Other processes write to the same store; poll it.
                app.tracker.refresh()
                continue
            except StopIteration:
                break
            if snapshot == shown:
                continue
            click.clear()
            _render(snapshot, app)
            shown = snapshot
            redraws += 1
    except KeyboardInterrupt:
        pass
    finally:
        subscription.close()
        scheduler.stop()


@cli.command("export")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_obj
def export_habits(app: AppContext, path: Path) -> None:
    """Write all habits to a JSON file keyed by id."""

    documents = {habit.id: habit_to_document(habit) for habit in app.tracker.load_habits()}
    path.write_text(json.dumps(documents, indent=2, sort_keys=True), encoding="utf-8")
    click.echo(f"Exported {len(documents)} habits to {path}")
    _report_failures(app)


@cli.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def import_habits(app: AppContext, path: Path) -> None:
    """Load habit documents from a JSON file keyed by id."""

    try:
        documents = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(documents, dict):
        raise click.ClickException(f"{path} must contain an object keyed by habit id")

    for habit_id, data in documents.items():
        app.tracker.restore_habit(habit_from_document(str(habit_id), data))
    # Derived fields of imported documents are corrected by the load pass.
    habits = app.tracker.refresh()
    click.echo(f"Imported {len(documents)} habits")
    _render(habits, app)
    _report_failures(app)


def main() -> None:
    cli()
