"""Command dispatcher.

A ``Command`` is one unit of store I/O. Executing it always yields exactly one
message: the typed success message, or ``ErrorMsg`` when anything fails.
The ``Dispatcher`` runs commands off the event loop on a single worker thread
(so the store only ever sees sequential calls) and posts each result back to
the control loop. Commands issued together are independent; no ordering
between their results is guaranteed.
"""
from __future__ import annotations
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Set

from config import Config, save_config
from dates import end_of_day
from errors import TskError
from messages import (
    ClearStatus,
    ConfigSaved,
    ErrorMsg,
    ProjectCreated,
    ProjectDeleted,
    ProjectsLoaded,
    RecurrenceDeleted,
    RecurrenceSet,
    TagCreated,
    TagDeleted,
    TagsLoaded,
    TaskCreated,
    TaskDeleted,
    TasksLoaded,
    TaskUpdated,
)
from models import Recurrence, RecurrencePattern, Task
from recurrence import calculate_next_due, complete_task_with_recurrence
from storage import Store, TaskFilter

logger = logging.getLogger(__name__)

Message = Any


@dataclass(frozen=True)
class Command:
    name: str
    run: Callable[[], Message]
    delay: float = 0.0

    def execute(self) -> Message:
        try:
            return self.run()
        except TskError as exc:
            logger.warning("%s failed: %s", self.name, exc)
            return ErrorMsg(str(exc))
        except Exception as exc:
            logger.exception("%s failed unexpectedly", self.name)
            return ErrorMsg(f"{self.name} failed: {exc}")


# -------------------- loading --------------------
def load_tasks(store: Store, project_id: Optional[int] = None, search: str = "") -> Command:
    task_filter = TaskFilter(project_id=project_id, search=search)
    return Command("load-tasks", lambda: TasksLoaded(tuple(store.list_tasks(task_filter))))


def load_projects(store: Store) -> Command:
    return Command("load-projects", lambda: ProjectsLoaded(tuple(store.list_projects())))


def load_tags(store: Store) -> Command:
    return Command("load-tags", lambda: TagsLoaded(tuple(store.list_tags())))


# -------------------- tasks --------------------
def create_task(store: Store, title: str, project_id: Optional[int] = None) -> Command:
    return Command(
        "create-task",
        lambda: TaskCreated(store.create_task(Task(id=0, title=title, project_id=project_id))),
    )


def update_task(store: Store, task: Task) -> Command:
    return Command("update-task", lambda: TaskUpdated(store.update_task(task)))


def complete_task(store: Store, task_id: int) -> Command:
    def run() -> Message:
        result = complete_task_with_recurrence(store, task_id)
        return TaskUpdated(result.completed)

    return Command("complete-task", run)


def delete_task(store: Store, task_id: int) -> Command:
    def run() -> Message:
        store.delete_task(task_id)
        return TaskDeleted(task_id)

    return Command("delete-task", run)


# -------------------- projects --------------------
def create_project(store: Store, name: str, description: str = "") -> Command:
    return Command("create-project", lambda: ProjectCreated(store.create_project(name, description)))


def delete_project(store: Store, project_id: int) -> Command:
    def run() -> Message:
        store.delete_project(project_id)
        return ProjectDeleted(project_id)

    return Command("delete-project", run)


# -------------------- tags --------------------
def create_tag(store: Store, name: str) -> Command:
    return Command("create-tag", lambda: TagCreated(store.create_tag(name)))


def create_tag_and_attach(store: Store, name: str, task_id: int) -> Command:
    """Create ``name`` (or reuse it if it exists) and attach it to the task."""
    def run() -> Message:
        with store.atomic():
            tag = store.get_tag_by_name(name) or store.create_tag(name)
            store.add_tag_to_task(task_id, tag.id)
        return TagCreated(tag)

    return Command("create-tag", run)


def delete_tag(store: Store, tag_id: int) -> Command:
    def run() -> Message:
        store.delete_tag(tag_id)
        return TagDeleted(tag_id)

    return Command("delete-tag", run)


def add_tag_to_task(store: Store, task_id: int, tag_id: int) -> Command:
    def run() -> Message:
        store.add_tag_to_task(task_id, tag_id)
        return TaskUpdated(None)

    return Command("add-tag", run)


def remove_tag_from_task(store: Store, task_id: int, tag_id: int) -> Command:
    def run() -> Message:
        store.remove_tag_from_task(task_id, tag_id)
        return TaskUpdated(None)

    return Command("remove-tag", run)


# -------------------- recurrences --------------------
def set_recurrence(store: Store, task_id: int, pattern: RecurrencePattern, interval: int = 1,
                   now: Optional[datetime] = None) -> Command:
    def run() -> Message:
        current = store.get_recurrence(task_id)
        next_due = end_of_day(calculate_next_due(pattern, interval, now or datetime.now()))
        rec = Recurrence(
            task_id=task_id,
            pattern=pattern,
            interval=interval,
            next_due=next_due,
            id=current.id if current else None,
        )
        return RecurrenceSet(store.set_recurrence(rec))

    return Command("set-recurrence", run)


def delete_recurrence(store: Store, task_id: int) -> Command:
    def run() -> Message:
        store.delete_recurrence(task_id)
        return RecurrenceDeleted(task_id)

    return Command("delete-recurrence", run)


# -------------------- settings / timers --------------------
def save_theme(config: Config, theme_name: str) -> Command:
    def run() -> Message:
        save_config(replace(config, theme=theme_name))
        return ConfigSaved(theme_name)

    return Command("save-theme", run)


def clear_status_after(delay: float, seq: int) -> Command:
    return Command("clear-status", lambda: ClearStatus(seq), delay=delay)


# -------------------- dispatch --------------------
class Dispatcher:
    """Runs commands as asyncio tasks and posts each result message."""

    def __init__(self, post: Callable[[Message], None], executor: Optional[ThreadPoolExecutor] = None):
        self._post = post
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="tsk-store")
        self._pending: Set["asyncio.Task[None]"] = set()

    def dispatch(self, commands: Iterable[Command]) -> None:
        loop = asyncio.get_running_loop()
        for command in commands:
            task = loop.create_task(self._run(command))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _run(self, command: Command) -> None:
        if command.delay > 0:
            await asyncio.sleep(command.delay)
        loop = asyncio.get_running_loop()
        message = await loop.run_in_executor(self._executor, command.execute)
        self._post(message)

    async def drain(self) -> None:
        """Wait until every dispatched command has posted its message."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    def shutdown(self) -> None:
        for task in list(self._pending):
            task.cancel()
        self._executor.shutdown(wait=False)
