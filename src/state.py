"""Interaction state machine.

``AppState`` is immutable; ``Controller.update`` folds one event (a key, a
resize or a command result) into a new state and returns the commands to
dispatch. Keys are routed to exactly one handler, by precedence: open
overlay, then active text input, then global bindings, then the view.

Decisions:
- Validation failures (blank title, bad date) are reported as error banners
  before any command is issued.
- Every banner carries a sequence number; its scheduled clear is ignored once
  a newer banner has replaced it.
- Confirmation overlays commit on "y" only.
- After every event the scroll offsets are moved just enough to keep each
  cursor inside its window.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional, Tuple

import commands as cmd
from commands import Command
from config import Config
from dates import ISO_DAY, end_of_day, parse_iso_day
from errors import ValidationError
from keys import KEYS, PRIORITY_KEYS, is_text
from messages import (
    ClearStatus,
    ConfigSaved,
    ErrorMsg,
    KeyPressed,
    ProjectCreated,
    ProjectDeleted,
    ProjectsLoaded,
    RecurrenceDeleted,
    RecurrenceSet,
    Resized,
    TagCreated,
    TagDeleted,
    TagsLoaded,
    TaskCreated,
    TaskDeleted,
    TasksLoaded,
    TaskUpdated,
)
from models import Project, RecurrencePattern, Status, Tag, Task
from storage import Store
from theme import DEFAULT_THEME, THEME_NAMES, THEMES
from viewport import board_rows, body_height, list_layout, scroll_window

logger = logging.getLogger(__name__)

SUCCESS_TTL = 1.5
ERROR_TTL = 5.0
ALL_PROJECTS = "All"

DUE_OPTIONS: Tuple[str, ...] = ("Today", "Tomorrow", "Next week", "Clear", "Custom...")
RECURRENCE_OPTIONS: Tuple[RecurrencePattern, ...] = (
    RecurrencePattern.DAILY,
    RecurrencePattern.WEEKLY,
    RecurrencePattern.MONTHLY,
    RecurrencePattern.YEARLY,
)
BOARD_STATUSES: Tuple[Status, ...] = (Status.TODO, Status.DOING, Status.DONE)

Result = Tuple["AppState", List[Command]]


class View(Enum):
    LIST = "list"
    BOARD = "board"


class Overlay(Enum):
    NONE = "none"
    HELP = "help"
    PROJECT_SELECT = "project-select"
    PROJECT_CREATE = "project-create"
    CONFIRM_DELETE_PROJECT = "confirm-delete-project"
    TAG_SELECT = "tag-select"
    TAG_CREATE = "tag-create"
    CONFIRM_DELETE_TAG = "confirm-delete-tag"
    CONFIRM_DELETE = "confirm-delete"
    DUE_DATE = "due-date"
    DUE_DATE_CUSTOM = "due-date-custom"
    RECURRENCE_SELECT = "recurrence-select"
    TASK_DETAIL = "task-detail"
    THEME_SELECT = "theme-select"


class InputMode(Enum):
    NONE = "none"
    ADD = "add"
    EDIT = "edit"
    SEARCH = "search"


INPUT_PROMPTS = {
    InputMode.ADD: ("New task: ", "Enter task title..."),
    InputMode.EDIT: ("Edit: ", "Enter new title..."),
    InputMode.SEARCH: ("Search: ", "Search tasks..."),
}


@dataclass(frozen=True)
class AppState:
    view: View = View.LIST
    overlay: Overlay = Overlay.NONE
    input_mode: InputMode = InputMode.NONE
    # data
    tasks: Tuple[Task, ...] = ()
    projects: Tuple[Project, ...] = ()
    tags: Tuple[Tag, ...] = ()
    # list view
    cursor: int = 0
    done_cursor: int = 0
    in_done: bool = False
    done_collapsed: bool = False
    list_scroll: int = 0
    done_scroll: int = 0
    # board view
    board_col: int = 0
    board_cursors: Tuple[int, int, int] = (0, 0, 0)
    board_scrolls: Tuple[int, int, int] = (0, 0, 0)
    # overlays and forms
    overlay_cursor: int = 0
    input_text: str = ""
    edit_task_id: Optional[int] = None
    project_form_name: str = ""
    project_form_desc: str = ""
    project_form_focus: int = 0
    tag_form_name: str = ""
    due_form_value: str = ""
    # filters
    project_id: Optional[int] = None
    project_name: str = ALL_PROJECTS
    search_query: str = ""
    # banner
    status_text: str = ""
    status_error: bool = False
    status_seq: int = 0
    # terminal
    theme_name: str = DEFAULT_THEME
    width: int = 80
    height: int = 24
    ready: bool = False
    quit: bool = False

    @property
    def active_tasks(self) -> Tuple[Task, ...]:
        return tuple(t for t in self.tasks if not t.is_done)

    @property
    def done_tasks(self) -> Tuple[Task, ...]:
        return tuple(t for t in self.tasks if t.is_done)

    @property
    def columns(self) -> Tuple[Tuple[Task, ...], ...]:
        return tuple(tuple(t for t in self.tasks if t.status is s) for s in BOARD_STATUSES)

    @property
    def input_placeholder(self) -> str:
        if self.input_mode is InputMode.NONE:
            return ""
        return INPUT_PROMPTS[self.input_mode][1]


def selected_task(state: AppState) -> Optional[Task]:
    """The task every action and overlay operates on, if any."""
    if state.view is View.BOARD:
        column = state.columns[state.board_col]
        cursor = state.board_cursors[state.board_col]
    elif state.in_done:
        column, cursor = state.done_tasks, state.done_cursor
    else:
        column, cursor = state.active_tasks, state.cursor
    if 0 <= cursor < len(column):
        return column[cursor]
    return None


def custom_due_placeholder(now: datetime) -> str:
    return (now + timedelta(days=3)).strftime(ISO_DAY)


def _clamp(value: int, count: int) -> int:
    return max(0, min(value, count - 1))


def _move(cursor: int, delta: int, upper: int) -> int:
    return max(0, min(cursor + delta, upper))


def _backspace(text: str) -> str:
    return text[:-1]


class Controller:
    def __init__(self, store: Store, config: Config, clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.config = config
        self.clock = clock

    def init(self, state: AppState) -> List[Command]:
        return [self._reload(state), cmd.load_projects(self.store), cmd.load_tags(self.store)]

    def update(self, state: AppState, event: object) -> Result:
        if isinstance(event, KeyPressed):
            state, commands = self._on_key(state, event.key)
        elif isinstance(event, Resized):
            state, commands = replace(state, width=event.width, height=event.height, ready=True), []
        else:
            state, commands = self._on_message(state, event)
        return self._follow_cursor(state), commands

    # -------------------- helpers --------------------
    def _reload(self, state: AppState) -> Command:
        return cmd.load_tasks(self.store, state.project_id, state.search_query)

    def _status(self, state: AppState, text: str, error: bool = False) -> Tuple[AppState, Command]:
        seq = state.status_seq + 1
        state = replace(state, status_text=text, status_error=error, status_seq=seq)
        return state, cmd.clear_status_after(ERROR_TTL if error else SUCCESS_TTL, seq)

    def _fail(self, state: AppState, text: str) -> Result:
        state, clear = self._status(state, text, error=True)
        return state, [clear]

    def _succeed(self, state: AppState, text: str, *commands: Command) -> Result:
        state, clear = self._status(state, text)
        return state, [*commands, clear]

    def _close(self, state: AppState, *commands: Command) -> Result:
        return replace(state, overlay=Overlay.NONE), list(commands)

    def _follow_cursor(self, state: AppState) -> AppState:
        body = body_height(state.height, state.input_mode is not InputMode.NONE)
        if state.view is View.LIST:
            active, done = state.active_tasks, state.done_tasks
            layout = list_layout(body, len(active), len(done), state.done_collapsed)
            list_scroll = scroll_window(state.cursor, layout.active_rows, len(active), state.list_scroll).start
            done_scroll = state.done_scroll
            if layout.done_rows:
                done_scroll = scroll_window(state.done_cursor, layout.done_rows, len(done), done_scroll).start
            return replace(state, list_scroll=list_scroll, done_scroll=done_scroll)
        rows = board_rows(body)
        scrolls = tuple(
            scroll_window(state.board_cursors[i], rows, len(column), state.board_scrolls[i]).start
            for i, column in enumerate(state.columns)
        )
        return replace(state, board_scrolls=scrolls)

    # -------------------- result messages --------------------
    def _on_message(self, state: AppState, msg: object) -> Result:
        store = self.store
        if isinstance(msg, TasksLoaded):
            return self._tasks_loaded(state, msg.tasks), []
        if isinstance(msg, ProjectsLoaded):
            return replace(state, projects=msg.projects), []
        if isinstance(msg, TagsLoaded):
            return replace(state, tags=msg.tags), []
        if isinstance(msg, TaskCreated):
            return self._succeed(state, f"✓ Created: {msg.task.title}",
                                 self._reload(state), cmd.load_projects(store))
        if isinstance(msg, TaskUpdated):
            return self._succeed(state, "✓ Updated", self._reload(state), cmd.load_projects(store))
        if isinstance(msg, TaskDeleted):
            return self._succeed(state, "✓ Deleted", self._reload(state), cmd.load_projects(store))
        if isinstance(msg, ProjectCreated):
            return self._succeed(state, f"✓ Created project: {msg.project.name}", cmd.load_projects(store))
        if isinstance(msg, ProjectDeleted):
            return self._succeed(state, "✓ Project deleted (tasks moved to Inbox)",
                                 cmd.load_projects(store), self._reload(state))
        if isinstance(msg, TagCreated):
            return self._succeed(state, f"✓ Created tag: {msg.tag.name}",
                                 cmd.load_tags(store), self._reload(state))
        if isinstance(msg, TagDeleted):
            return self._succeed(state, "✓ Tag deleted", cmd.load_tags(store), self._reload(state))
        if isinstance(msg, RecurrenceSet):
            return self._succeed(state, "✓ Recurrence set", self._reload(state))
        if isinstance(msg, RecurrenceDeleted):
            return self._succeed(state, "✓ Recurrence removed", self._reload(state))
        if isinstance(msg, ConfigSaved):
            return state, []
        if isinstance(msg, ErrorMsg):
            return self._fail(state, msg.text)
        if isinstance(msg, ClearStatus):
            if msg.seq != state.status_seq:
                return state, []
            return replace(state, status_text="", status_error=False), []
        logger.warning("ignoring unknown event %r", msg)
        return state, []

    def _tasks_loaded(self, state: AppState, tasks: Tuple[Task, ...]) -> AppState:
        state = replace(state, tasks=tuple(tasks))
        active, done = state.active_tasks, state.done_tasks
        cursor = _clamp(state.cursor, len(active))
        in_done = state.in_done and bool(done) and not state.done_collapsed
        if state.in_done and not in_done:
            cursor = _clamp(len(active) - 1, len(active))
        board_cursors = tuple(_clamp(c, len(col)) for c, col in zip(state.board_cursors, state.columns))
        return replace(
            state,
            cursor=cursor,
            done_cursor=_clamp(state.done_cursor, len(done)),
            in_done=in_done,
            board_cursors=board_cursors,
        )

    # -------------------- keys --------------------
    def _on_key(self, state: AppState, key: str) -> Result:
        if state.overlay is not Overlay.NONE:
            return self._overlay_key(state, key)
        if state.input_mode is not InputMode.NONE:
            return self._input_key(state, key)
        result = self._global_key(state, key)
        if result is not None:
            return result
        if state.view is View.LIST:
            return self._list_key(state, key)
        return self._board_key(state, key)

    def _global_key(self, state: AppState, key: str) -> Optional[Result]:
        task = selected_task(state)
        if KEYS.quit.matches(key):
            return replace(state, quit=True), []
        if KEYS.help.matches(key):
            return replace(state, overlay=Overlay.HELP), []
        if KEYS.toggle_view.matches(key):
            view = View.BOARD if state.view is View.LIST else View.LIST
            state = replace(state, view=view)
            return state, [self._reload(state)]
        if KEYS.add.matches(key):
            return replace(state, input_mode=InputMode.ADD, input_text=""), []
        if KEYS.edit.matches(key):
            if task is None:
                return state, []
            return replace(state, input_mode=InputMode.EDIT, input_text=task.title, edit_task_id=task.id), []
        if KEYS.search.matches(key):
            return replace(state, input_mode=InputMode.SEARCH, input_text=state.search_query), []
        if KEYS.project.matches(key):
            return replace(state, overlay=Overlay.PROJECT_SELECT, overlay_cursor=0), []
        if KEYS.theme.matches(key):
            cursor = THEME_NAMES.index(state.theme_name) if state.theme_name in THEME_NAMES else 0
            return replace(state, overlay=Overlay.THEME_SELECT, overlay_cursor=cursor), []
        if KEYS.toggle_done.matches(key):
            return self._toggle_done_section(state), []
        if KEYS.clear_search.matches(key):
            if not state.search_query:
                return state, []
            state = replace(state, search_query="", cursor=0, in_done=False)
            return state, [self._reload(state)]
        for binding, overlay in ((KEYS.due, Overlay.DUE_DATE),
                                 (KEYS.tags, Overlay.TAG_SELECT),
                                 (KEYS.recurrence, Overlay.RECURRENCE_SELECT)):
            if binding.matches(key):
                if task is None:
                    return state, []
                return replace(state, overlay=overlay, overlay_cursor=0), []
        return None

    def _toggle_done_section(self, state: AppState) -> AppState:
        if state.view is not View.LIST:
            return state
        collapsed = not state.done_collapsed
        state = replace(state, done_collapsed=collapsed)
        if collapsed and state.in_done:
            state = replace(state, in_done=False, cursor=_clamp(len(state.active_tasks) - 1, len(state.active_tasks)))
        return state

    # ---- views ----
    def _list_key(self, state: AppState, key: str) -> Result:
        active, done = state.active_tasks, state.done_tasks
        if KEYS.up.matches(key):
            if state.in_done:
                if state.done_cursor > 0:
                    return replace(state, done_cursor=state.done_cursor - 1), []
                if active:
                    return replace(state, in_done=False, cursor=len(active) - 1), []
                return state, []
            return replace(state, cursor=_move(state.cursor, -1, len(active) - 1)), []
        if KEYS.down.matches(key):
            if state.in_done:
                return replace(state, done_cursor=_move(state.done_cursor, 1, len(done) - 1)), []
            if state.cursor < len(active) - 1:
                return replace(state, cursor=state.cursor + 1), []
            if done and not state.done_collapsed:
                return replace(state, in_done=True, done_cursor=0), []
            return state, []
        return self._task_key(state, key)

    def _board_key(self, state: AppState, key: str) -> Result:
        col = state.board_col
        cursors = list(state.board_cursors)
        if KEYS.left.matches(key) or KEYS.right.matches(key):
            col = _move(col, -1 if KEYS.left.matches(key) else 1, len(BOARD_STATUSES) - 1)
            cursors[col] = _clamp(cursors[col], len(state.columns[col]))
            return replace(state, board_col=col, board_cursors=tuple(cursors)), []
        if KEYS.up.matches(key) or KEYS.down.matches(key):
            delta = -1 if KEYS.up.matches(key) else 1
            cursors[col] = _move(cursors[col], delta, len(state.columns[col]) - 1)
            return replace(state, board_cursors=tuple(cursors)), []
        return self._task_key(state, key)

    def _task_key(self, state: AppState, key: str) -> Result:
        """Status, priority, delete and detail actions shared by both views."""
        task = selected_task(state)
        if task is None:
            return state, []
        store = self.store
        if KEYS.select.matches(key):
            if task.status is Status.TODO:
                return state, [cmd.update_task(store, task.mark_doing())]
            if task.status is Status.DOING:
                return state, [cmd.complete_task(store, task.id)]
            return state, []
        if KEYS.backward.matches(key):
            if task.status is Status.DONE:
                return state, [cmd.update_task(store, task.mark_doing())]
            if task.status is Status.DOING:
                return state, [cmd.update_task(store, task.mark_todo())]
            return state, []
        if KEYS.done.matches(key):
            if task.is_done:
                return state, [cmd.update_task(store, task.mark_todo())]
            return state, [cmd.complete_task(store, task.id)]
        if KEYS.delete.matches(key):
            return replace(state, overlay=Overlay.CONFIRM_DELETE), []
        if key in PRIORITY_KEYS:
            return state, [cmd.update_task(store, replace(task, priority=PRIORITY_KEYS[key]))]
        if KEYS.detail.matches(key):
            return replace(state, overlay=Overlay.TASK_DETAIL), []
        return state, []

    # ---- text input ----
    def _input_key(self, state: AppState, key: str) -> Result:
        if KEYS.cancel.matches(key):
            return replace(state, input_mode=InputMode.NONE, input_text=""), []
        if key == "tab":
            if not state.input_text:
                return replace(state, input_text=state.input_placeholder), []
            return state, []
        if key == "backspace":
            return replace(state, input_text=_backspace(state.input_text)), []
        if key == "enter":
            return self._submit_input(state)
        if is_text(key):
            return replace(state, input_text=state.input_text + key), []
        return state, []

    def _submit_input(self, state: AppState) -> Result:
        mode, edit_id = state.input_mode, state.edit_task_id
        value = state.input_text.strip()
        state = replace(state, input_mode=InputMode.NONE, input_text="", edit_task_id=None)
        if mode is InputMode.SEARCH:
            state = replace(state, search_query=value, cursor=0, in_done=False)
            return state, [self._reload(state)]
        if not value:
            return self._fail(state, "Task title is required")
        if mode is InputMode.ADD:
            return state, [cmd.create_task(self.store, value, state.project_id)]
        task = next((t for t in state.tasks if t.id == edit_id), None)
        if task is None:
            return self._fail(state, "Task no longer exists")
        return state, [cmd.update_task(self.store, replace(task, title=value))]

    # -------------------- overlays --------------------
    def _overlay_key(self, state: AppState, key: str) -> Result:
        handler = {
            Overlay.HELP: self._any_key_closes,
            Overlay.TASK_DETAIL: self._any_key_closes,
            Overlay.PROJECT_SELECT: self._project_select_key,
            Overlay.PROJECT_CREATE: self._project_create_key,
            Overlay.CONFIRM_DELETE_PROJECT: self._confirm_delete_project_key,
            Overlay.CONFIRM_DELETE: self._confirm_delete_key,
            Overlay.DUE_DATE: self._due_date_key,
            Overlay.DUE_DATE_CUSTOM: self._due_date_custom_key,
            Overlay.TAG_SELECT: self._tag_select_key,
            Overlay.TAG_CREATE: self._tag_create_key,
            Overlay.CONFIRM_DELETE_TAG: self._confirm_delete_tag_key,
            Overlay.RECURRENCE_SELECT: self._recurrence_key,
            Overlay.THEME_SELECT: self._theme_key,
        }[state.overlay]
        return handler(state, key)

    def _any_key_closes(self, state: AppState, key: str) -> Result:
        return self._close(state)

    def _menu_move(self, state: AppState, key: str, last: int) -> Optional[AppState]:
        if KEYS.up.matches(key):
            return replace(state, overlay_cursor=_move(state.overlay_cursor, -1, last))
        if KEYS.down.matches(key):
            return replace(state, overlay_cursor=_move(state.overlay_cursor, 1, last))
        return None

    # ---- projects ----
    def _project_select_key(self, state: AppState, key: str) -> Result:
        if KEYS.cancel.matches(key):
            return self._close(state)
        moved = self._menu_move(state, key, len(state.projects))
        if moved is not None:
            return moved, []
        if KEYS.select.matches(key):
            if state.overlay_cursor == 0:
                project_id, name = None, ALL_PROJECTS
            else:
                project = state.projects[state.overlay_cursor - 1]
                project_id, name = project.id, project.name
            state = replace(state, overlay=Overlay.NONE, project_id=project_id, project_name=name,
                            cursor=0, done_cursor=0, in_done=False, board_cursors=(0, 0, 0))
            return state, [self._reload(state)]
        if key in ("n", "a"):
            return replace(state, overlay=Overlay.PROJECT_CREATE, project_form_name="",
                           project_form_desc="", project_form_focus=0), []
        if KEYS.delete.matches(key):
            if state.overlay_cursor == 0:
                return self._fail(state, "Cannot delete 'All' filter")
            if state.projects[state.overlay_cursor - 1].is_inbox:
                return self._fail(state, "Cannot delete Inbox project")
            return replace(state, overlay=Overlay.CONFIRM_DELETE_PROJECT), []
        return state, []

    def _project_create_key(self, state: AppState, key: str) -> Result:
        if KEYS.cancel.matches(key):
            return self._close(state)
        if key in ("tab", "shift+tab"):
            return replace(state, project_form_focus=1 - state.project_form_focus), []
        if key == "enter":
            name = state.project_form_name.strip()
            if not name:
                return self._fail(state, "Project name is required")
            return self._close(state, cmd.create_project(self.store, name, state.project_form_desc.strip()))
        field_name = "project_form_name" if state.project_form_focus == 0 else "project_form_desc"
        value = getattr(state, field_name)
        if key == "backspace":
            return replace(state, **{field_name: _backspace(value)}), []
        if is_text(key):
            return replace(state, **{field_name: value + key}), []
        return state, []

    def _confirm_delete_project_key(self, state: AppState, key: str) -> Result:
        if key != "y":
            return replace(state, overlay=Overlay.PROJECT_SELECT), []
        index = state.overlay_cursor - 1
        if not 0 <= index < len(state.projects):
            return self._close(state)
        project = state.projects[index]
        if state.project_id == project.id:
            state = replace(state, project_id=None, project_name=ALL_PROJECTS)
        return self._close(state, cmd.delete_project(self.store, project.id))

    # ---- tasks ----
    def _confirm_delete_key(self, state: AppState, key: str) -> Result:
        task = selected_task(state)
        if key != "y" or task is None:
            return self._close(state)
        return self._close(state, cmd.delete_task(self.store, task.id))

    def _due_date_key(self, state: AppState, key: str) -> Result:
        if KEYS.cancel.matches(key):
            return self._close(state)
        moved = self._menu_move(state, key, len(DUE_OPTIONS) - 1)
        if moved is not None:
            return moved, []
        if not KEYS.select.matches(key):
            return state, []
        task = selected_task(state)
        if task is None:
            return self._close(state)
        if state.overlay_cursor == len(DUE_OPTIONS) - 1:
            return replace(state, overlay=Overlay.DUE_DATE_CUSTOM, due_form_value=""), []
        today = end_of_day(self.clock())
        due = {
            0: today,
            1: today + timedelta(days=1),
            2: today + timedelta(days=7),
            3: None,
        }[state.overlay_cursor]
        return self._close(state, cmd.update_task(self.store, replace(task, due_date=due)))

    def _due_date_custom_key(self, state: AppState, key: str) -> Result:
        if KEYS.cancel.matches(key):
            return replace(state, overlay=Overlay.DUE_DATE), []
        if key == "tab":
            if not state.due_form_value:
                return replace(state, due_form_value=custom_due_placeholder(self.clock())), []
            return state, []
        if key == "backspace":
            return replace(state, due_form_value=_backspace(state.due_form_value)), []
        if key == "enter":
            try:
                due = parse_iso_day(state.due_form_value)
            except ValidationError as exc:
                return self._fail(state, str(exc))
            task = selected_task(state)
            if task is None:
                return self._close(state)
            return self._close(state, cmd.update_task(self.store, replace(task, due_date=due)))
        if is_text(key):
            return replace(state, due_form_value=state.due_form_value + key), []
        return state, []

    # ---- tags ----
    def _tag_select_key(self, state: AppState, key: str) -> Result:
        if KEYS.cancel.matches(key):
            return self._close(state)
        moved = self._menu_move(state, key, len(state.tags))
        if moved is not None:
            return moved, []
        if KEYS.select.matches(key):
            task = selected_task(state)
            if task is None:
                return self._close(state)
            if state.overlay_cursor >= len(state.tags):
                return replace(state, overlay=Overlay.TAG_CREATE, tag_form_name=""), []
            tag = state.tags[state.overlay_cursor]
            if task.has_tag(tag.id):
                return state, [cmd.remove_tag_from_task(self.store, task.id, tag.id)]
            return state, [cmd.add_tag_to_task(self.store, task.id, tag.id)]
        if KEYS.delete.matches(key) and state.overlay_cursor < len(state.tags):
            return replace(state, overlay=Overlay.CONFIRM_DELETE_TAG), []
        return state, []

    def _tag_create_key(self, state: AppState, key: str) -> Result:
        if KEYS.cancel.matches(key):
            return replace(state, overlay=Overlay.TAG_SELECT), []
        if key == "backspace":
            return replace(state, tag_form_name=_backspace(state.tag_form_name)), []
        if key == "enter":
            name = state.tag_form_name.strip()
            if not name:
                return self._fail(state, "Tag name is required")
            task = selected_task(state)
            if task is None:
                return self._close(state, cmd.create_tag(self.store, name))
            return self._close(state, cmd.create_tag_and_attach(self.store, name, task.id))
        if is_text(key):
            return replace(state, tag_form_name=state.tag_form_name + key), []
        return state, []

    def _confirm_delete_tag_key(self, state: AppState, key: str) -> Result:
        if key != "y":
            return replace(state, overlay=Overlay.TAG_SELECT), []
        if state.overlay_cursor >= len(state.tags):
            return self._close(state)
        return self._close(state, cmd.delete_tag(self.store, state.tags[state.overlay_cursor].id))

    # ---- recurrence / theme ----
    def _recurrence_key(self, state: AppState, key: str) -> Result:
        task = selected_task(state)
        if task is None:
            return self._close(state)
        if KEYS.cancel.matches(key):
            return self._close(state)
        last = len(RECURRENCE_OPTIONS) if task.recurrence else len(RECURRENCE_OPTIONS) - 1
        moved = self._menu_move(state, key, last)
        if moved is not None:
            return moved, []
        if not KEYS.select.matches(key):
            return state, []
        if state.overlay_cursor == len(RECURRENCE_OPTIONS):
            return self._close(state, cmd.delete_recurrence(self.store, task.id))
        pattern = RECURRENCE_OPTIONS[state.overlay_cursor]
        return self._close(state, cmd.set_recurrence(self.store, task.id, pattern, 1, self.clock()))

    def _theme_key(self, state: AppState, key: str) -> Result:
        if KEYS.cancel.matches(key):
            return self._close(state)
        moved = self._menu_move(state, key, len(THEME_NAMES) - 1)
        if moved is not None:
            return moved, []
        if not KEYS.select.matches(key):
            return state, []
        name = THEME_NAMES[state.overlay_cursor]
        state = replace(state, overlay=Overlay.NONE, theme_name=name)
        return self._succeed(state, f"Theme: {THEMES[name].name}", cmd.save_theme(self.config, name))
