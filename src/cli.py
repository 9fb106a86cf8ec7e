"""Command-line interface.

Running ``tsk`` with no subcommand opens the interactive board; every
subcommand performs one store operation and prints the result.

Status aliases: t (todo), ip/doing (in progress), d (done).
"""
from __future__ import annotations
import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import click

from config import Config, configure_logging, load_config
from dates import ISO_DAY, end_of_day, parse_date
from errors import NotFoundError, TskError, ValidationError
from models import Priority, Project, Recurrence, Status, Tag, Task
from recurrence import calculate_next_due, complete_task_with_recurrence, parse_repeat
from storage import Store, TaskFilter

logger = logging.getLogger(__name__)

STATUS_ALIASES = {
    't': Status.TODO,
    'todo': Status.TODO,
    'ip': Status.DOING,
    'in-progress': Status.DOING,
    'doing': Status.DOING,
    'd': Status.DONE,
    'done': Status.DONE,
}
STATUS_ICONS = {Status.TODO: "[ ]", Status.DOING: "[~]", Status.DONE: "[x]"}
TITLE_WIDTH = 40
COMMON_ALIASES = {"ls": "list", "remove": "rm", "delete": "rm"}


class AliasedGroup(click.Group):
    """Group that resolves short aliases (``ls``, ``rm`` ...) and reports store errors."""

    def __init__(self, *args, aliases: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.aliases = {**COMMON_ALIASES, **(aliases or {})}

    def get_command(self, ctx: click.Context, cmd_name: str) -> Optional[click.Command]:
        command = super().get_command(ctx, cmd_name)
        if command is not None:
            return command
        target = self.aliases.get(cmd_name)
        return super().get_command(ctx, target) if target else None

    def resolve_command(self, ctx: click.Context, args: List[str]):
        _, command, rest = super().resolve_command(ctx, args)
        return command.name if command else None, command, rest

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except TskError as exc:
            logger.warning("command failed: %s", exc)
            raise click.ClickException(str(exc)) from exc


@dataclass
class AppContext:
    config: Config
    store: Store


pass_app = click.make_pass_decorator(AppContext)


# -------------------- helpers --------------------
def _print_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
    widths = [len(h) for h in headers]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]
    for line in [headers, *rows]:
        click.echo("  ".join(cell.ljust(w) for cell, w in zip(line, widths)).rstrip())


def _truncate(text: str, width: int = TITLE_WIDTH) -> str:
    return text if len(text) <= width else text[:width - 3] + "..."


def _find_project(store: Store, name: str) -> Project:
    wanted = name.strip().lower()
    for project in store.list_projects():
        if project.name.lower() == wanted:
            return project
    raise NotFoundError(f"project not found: {name}")


def _find_tag(store: Store, name: str) -> Tag:
    tag = store.get_tag_by_name(name.strip())
    if tag is None:
        raise NotFoundError(f"tag not found: {name}")
    return tag


def _parse_status(raw: str) -> Status:
    status = STATUS_ALIASES.get(raw.strip().lower())
    if status is None:
        raise ValidationError(f"unknown status: {raw} (use todo, doing or done)")
    return status


def _parse_priority(raw: str) -> Priority:
    try:
        return Priority.parse(raw)
    except ValueError as exc:
        raise ValidationError(str(exc)) from None


def _iso(moment: Optional[datetime]) -> Optional[str]:
    return moment.isoformat() if moment else None


def _task_json(task: Task) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "status": task.status.value,
        "priority": task.priority.label.lower(),
        "project_id": task.project_id,
        "due_date": _iso(task.due_date),
        "created_at": _iso(task.created_at),
        "completed_at": _iso(task.completed_at),
        "tags": [tag.name for tag in task.tags],
        "recurrence": task.recurrence.describe() if task.recurrence else None,
    }


# -------------------- root --------------------
@click.group(cls=AliasedGroup, invoke_without_command=True,
             aliases={"proj": "project", "rec": "recurrence", "repeat": "recurrence"})
@click.option("--db", "db_path", type=click.Path(dir_okay=False, path_type=Path),
              help="Database file (default: $TSK_DB or $XDG_DATA_HOME/tsk/tsk.db).")
@click.pass_context
def cli(ctx: click.Context, db_path: Optional[Path]) -> None:
    """Terminal task manager. Run without a command for the interactive board."""
    config = load_config(db_path=db_path)
    configure_logging(config)
    try:
        store = Store.open(config.db_path)
    except TskError as exc:
        raise click.ClickException(f"open database: {exc}") from exc
    ctx.call_on_close(store.close)
    ctx.obj = AppContext(config, store)
    if ctx.invoked_subcommand is None:
        if not sys.stdin.isatty():
            raise click.ClickException("interactive mode needs a terminal; see 'tsk --help'")
        from tui import run_tui
        run_tui(store, config)


# -------------------- tasks --------------------
@cli.command()
@click.argument("title", nargs=-1, required=True)
@click.option("-p", "--project", help="Project name.")
@click.option("-t", "--tag", "tags", multiple=True, help="Tag name (repeatable; created if missing).")
@click.option("--priority", default="none", show_default=True, help="none, low, medium or high.")
@click.option("-d", "--due", help="today, tomorrow, next week, 3d or a date.")
@click.option("-r", "--repeat", help="daily, weekly, monthly or yearly, optionally ':N' (weekly:2).")
@pass_app
def add(app: AppContext, title: Sequence[str], project: Optional[str], tags: Sequence[str],
        priority: str, due: Optional[str], repeat: Optional[str]) -> None:
    """Add a task."""
    store = app.store
    text = " ".join(title).strip()
    if not text:
        raise ValidationError("Task title is required")
    project_id = _find_project(store, project).id if project else None
    level = _parse_priority(priority)
    due_date = parse_date(due) if due else None
    repeat_spec = parse_repeat(repeat) if repeat else None
    with store.atomic():
        task = store.create_task(Task(id=0, title=text, project_id=project_id,
                                      priority=level, due_date=due_date))
        for name in tags:
            tag = store.get_tag_by_name(name) or store.create_tag(name)
            store.add_tag_to_task(task.id, tag.id)
        rec = None
        if repeat_spec is not None:
            pattern, interval = repeat_spec
            next_due = end_of_day(calculate_next_due(pattern, interval, due_date or datetime.now()))
            rec = store.set_recurrence(Recurrence(task.id, pattern, interval, next_due))
    click.echo(f"Created task #{task.id}: {task.title}")
    if rec is not None:
        click.echo(f"  Recurrence: {rec.describe()}")


@cli.command("list")
@click.option("-s", "--status", help="todo, doing or done.")
@click.option("-p", "--project", help="Project name.")
@click.option("-t", "--tag", help="Tag name.")
@click.option("-a", "--all", "show_all", is_flag=True, help="Include done tasks.")
@click.option("-f", "--format", "fmt", type=click.Choice(["table", "json"]), default="table",
              show_default=True)
@pass_app
def list_tasks(app: AppContext, status: Optional[str], project: Optional[str], tag: Optional[str],
               show_all: bool, fmt: str) -> None:
    """List tasks (done tasks are hidden unless -a or -s)."""
    store = app.store
    task_filter = TaskFilter(
        project_id=_find_project(store, project).id if project else None,
        status=_parse_status(status) if status else None,
        tag_ids=(_find_tag(store, tag).id,) if tag else (),
    )
    tasks = store.list_tasks(task_filter)
    if not show_all and task_filter.status is None:
        tasks = [t for t in tasks if not t.is_done]

    if fmt == "json":
        click.echo(json.dumps([_task_json(t) for t in tasks], indent=2))
        return
    if not tasks:
        click.echo("No tasks found.")
        return
    rows = [
        [
            str(t.id),
            STATUS_ICONS[t.status],
            t.priority.label if t.priority else "",
            _truncate(t.title),
            t.due_date.strftime(ISO_DAY) if t.due_date else "",
            ", ".join(tag.name for tag in t.tags),
        ]
        for t in tasks
    ]
    _print_table(["ID", "STATUS", "PRIORITY", "TITLE", "DUE", "TAGS"], rows)


@cli.command()
@click.argument("task_id", type=int)
@pass_app
def done(app: AppContext, task_id: int) -> None:
    """Mark a task done (spawns the next occurrence of a recurring task)."""
    result = complete_task_with_recurrence(app.store, task_id)
    if result.spawned is not None:
        click.echo(f"Completed task #{task_id}: {result.completed.title} (next occurrence created)")
    else:
        click.echo(f"Completed task #{task_id}: {result.completed.title}")


@cli.command()
@click.argument("task_id", type=int)
@pass_app
def doing(app: AppContext, task_id: int) -> None:
    """Mark a task as in progress."""
    task = app.store.update_task(app.store.get_task(task_id).mark_doing())
    click.echo(f"Started task #{task.id}: {task.title}")


@cli.command()
@click.argument("task_id", type=int)
@click.option("-f", "--force", is_flag=True, help="Do not ask for confirmation.")
@pass_app
def rm(app: AppContext, task_id: int, force: bool) -> None:
    """Delete a task with its subtasks."""
    task = app.store.get_task(task_id)
    if not force and not click.confirm(f"Delete task #{task.id}: {task.title}?", default=False):
        click.echo("Cancelled.")
        return
    app.store.delete_task(task.id)
    click.echo(f"Deleted task #{task.id}: {task.title}")


# -------------------- projects --------------------
@cli.group(cls=AliasedGroup, invoke_without_command=True)
@click.pass_context
def project(ctx: click.Context) -> None:
    """Manage projects (lists them when no command is given)."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(project_list)


@project.command("list")
@pass_app
def project_list(app: AppContext) -> None:
    """List projects with progress."""
    rows = []
    for p in app.store.list_projects():
        progress = "0/0"
        if p.task_count:
            progress = f"{p.done_count}/{p.task_count} ({p.progress * 100:.0f}%)"
        rows.append([str(p.id), p.name, str(p.task_count), progress])
    _print_table(["ID", "NAME", "TASKS", "PROGRESS"], rows)


@project.command("add")
@click.argument("name")
@click.option("-d", "--description", default="", help="Project description.")
@pass_app
def project_add(app: AppContext, name: str, description: str) -> None:
    """Create a project."""
    created = app.store.create_project(name, description)
    click.echo(f"Created project #{created.id}: {created.name}")


@project.command("rm")
@click.argument("name")
@pass_app
def project_rm(app: AppContext, name: str) -> None:
    """Delete a project; its tasks move to the Inbox."""
    target = _find_project(app.store, name)
    app.store.delete_project(target.id)
    click.echo(f"Deleted project: {target.name} (tasks moved to Inbox)")


# -------------------- tags --------------------
@cli.group(cls=AliasedGroup, invoke_without_command=True)
@click.pass_context
def tag(ctx: click.Context) -> None:
    """Manage tags (lists them when no command is given)."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(tag_list)


@tag.command("list")
@pass_app
def tag_list(app: AppContext) -> None:
    """List tags."""
    tags = app.store.list_tags()
    if not tags:
        click.echo("No tags found.")
        return
    _print_table(["ID", "NAME", "COLOR"], [[str(t.id), t.name, t.color] for t in tags])


@tag.command("add")
@click.argument("name")
@click.option("-c", "--color", help="Hex color, e.g. #FF5733 (default: next palette color).")
@pass_app
def tag_add(app: AppContext, name: str, color: Optional[str]) -> None:
    """Create a tag."""
    created = app.store.create_tag(name, color)
    click.echo(f"Created tag #{created.id}: {created.name}")


@tag.command("rm")
@click.argument("name")
@click.option("-f", "--force", is_flag=True, help="Do not ask for confirmation.")
@pass_app
def tag_rm(app: AppContext, name: str, force: bool) -> None:
    """Delete a tag; tasks keep everything else."""
    target = _find_tag(app.store, name)
    if not force and not click.confirm(f"Delete tag '{target.name}' from all tasks?", default=False):
        click.echo("Cancelled.")
        return
    app.store.delete_tag(target.id)
    click.echo(f"Deleted tag: {target.name}")


# -------------------- recurrence --------------------
@cli.group(cls=AliasedGroup, aliases={"clear": "rm"})
def recurrence() -> None:
    """Manage recurring tasks."""


@recurrence.command("rm")
@click.argument("task_id", type=int)
@pass_app
def recurrence_rm(app: AppContext, task_id: int) -> None:
    """Stop a task from recurring."""
    task = app.store.get_task(task_id)
    if app.store.get_recurrence(task_id) is None:
        raise NotFoundError(f"task #{task_id} has no recurrence")
    app.store.delete_recurrence(task_id)
    click.echo(f"Removed recurrence from task #{task.id}: {task.title}")
