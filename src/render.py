"""Frame rendering: a pure function from state to screen text.

Nothing here touches the store or the terminal; ``tui`` writes the result.
Overlays replace the frame with a box centred on an otherwise blank screen.
"""
from __future__ import annotations
from datetime import datetime
from typing import List, Optional, Sequence

from board import Board, completion_text, pad, render_window, truncate, visible_len
from dates import completion_delta, due_label
from keys import KEYS
from models import Status, Task
from state import (
    DUE_OPTIONS,
    INPUT_PROMPTS,
    RECURRENCE_OPTIONS,
    AppState,
    InputMode,
    Overlay,
    View,
    custom_due_placeholder,
    selected_task,
)
from theme import THEME_NAMES, THEMES, Styles
from viewport import MARGIN, body_height, content_width, list_layout, scroll_window

STATUS_ICONS = {Status.TODO: "○", Status.DOING: "◐", Status.DONE: "●"}
STATUS_LABELS = {Status.TODO: "○ Todo", Status.DOING: "◐ Doing", Status.DONE: "● Done"}
OVERLAY_MAX_ROWS = 12


def render(state: AppState, styles: Styles, now: Optional[datetime] = None) -> str:
    if not state.ready:
        return "\n\n  Loading..."
    now = now or datetime.now()
    if state.overlay is not Overlay.NONE:
        return "\n".join(place_center(render_overlay(state, styles, now), state.width, state.height))

    width = content_width(state.width)
    input_active = state.input_mode is not InputMode.NONE
    body = body_height(state.height, input_active)
    lines = [render_header(state, styles, width), ""]
    if input_active:
        lines += [render_input(state, styles), ""]
    if state.view is View.LIST:
        lines += render_list(state, styles, width, body, now)
    else:
        lines += Board(styles, now).render(
            state.columns, state.board_col, state.board_cursors, state.board_scrolls, width, body)
    lines += ["", render_status_bar(state, styles)]
    return "\n".join((" " * MARGIN + line).rstrip() for line in lines)


# -------------------- chrome --------------------
def render_header(state: AppState, styles: Styles, width: int) -> str:
    left = styles.header(" tsk ") + "  " + \
        styles.tab(" List ", state.view is View.LIST) + styles.tab(" Board ", state.view is View.BOARD)
    right = styles.badge(state.project_name)
    if state.search_query:
        right += " " + styles.accent(f"/{state.search_query}")
    active, done = len(state.active_tasks), len(state.done_tasks)
    count = f" {active} tasks, {done} done" if done else f" {active} tasks"
    right += styles.muted(count)
    gap = max(2, width - visible_len(left) - visible_len(right))
    return left + " " * gap + right


def render_input(state: AppState, styles: Styles) -> str:
    prompt, placeholder = INPUT_PROMPTS[state.input_mode]
    if state.input_text:
        field = state.input_text + "▌"
    else:
        field = "▌" + styles.muted(placeholder)
    return styles.header(prompt) + field


def render_status_bar(state: AppState, styles: Styles) -> str:
    help_text = "  ".join(styles.accent(b.help_key) + styles.muted(f":{b.help_text}") for b in KEYS.short_help())
    if not state.status_text:
        return help_text
    banner = styles.error(state.status_text) if state.status_error else styles.accent(state.status_text)
    return help_text + "  " + banner


# -------------------- list view --------------------
def render_list(state: AppState, styles: Styles, width: int, body: int, now: datetime) -> List[str]:
    active, done = state.active_tasks, state.done_tasks
    if not active and not done:
        text = "No tasks. Press 'a' to add one."
        if state.search_query:
            text = "No tasks match your search. Press 'c' to clear."
        return [styles.muted(text)] + [""] * (body - 1)

    def row(task: Task, selected: bool) -> str:
        return task_row(task, selected, width, styles, now)

    layout = list_layout(body, len(active), len(done), state.done_collapsed)
    lines = render_window(styles, active, state.cursor, not state.in_done, layout.active_rows,
                          state.list_scroll, row, "No active tasks")
    if layout.show_done_header:
        icon = "▶" if state.done_collapsed else "▼"
        header = f"{icon} Done ({len(done)})"
        lines += ["", styles.subheader(header) if state.in_done else styles.muted(header)]
    if layout.done_rows:
        lines += render_window(styles, done, state.done_cursor, state.in_done, layout.done_rows,
                               state.done_scroll, row, "", indicator_suffix="done")
    return lines


def task_row(task: Task, selected: bool, width: int, styles: Styles, now: datetime) -> str:
    icon = styles.status(STATUS_ICONS[task.status], task.status)
    priority = styles.priority(task.priority) or " "
    suffix_plain, suffix = "", ""
    if task.is_done:
        text = completion_text(task, with_time=True)
        if text:
            suffix_plain, suffix = f" {text}", " " + styles.muted(text)
    elif task.due_date is not None:
        label, kind = due_label(task.due_date, now)
        suffix_plain, suffix = f" by {label}", " " + styles.due(f"by {label}", kind)
    for tag in task.tags:
        suffix_plain += f" #{tag.name}"
        suffix += " " + styles.tag(tag.name, tag.color)
    room = max(10, width - 4 - len(suffix_plain))
    title = styles.title(truncate(task.title, room), done=task.is_done)
    line = f"{icon} {priority} {title}{suffix}"
    if selected:
        return styles.selected(pad(line, width))
    return line


# -------------------- overlays --------------------
def place_center(box: Sequence[str], width: int, height: int) -> List[str]:
    box_width = max((visible_len(line) for line in box), default=0)
    left = " " * max(0, (width - box_width) // 2)
    top = max(0, (height - len(box)) // 2)
    return [""] * top + [left + line for line in box]


def draw_box(lines: Sequence[str], styles: Styles, min_width: int = 0, danger: bool = False) -> List[str]:
    """Rounded border with one blank line and two spaces of padding inside."""
    inner = max([min_width] + [visible_len(line) for line in lines])
    edge = lambda text: styles.border(text, danger)  # noqa: E731
    body = [""] + list(lines) + [""]
    out = [edge("╭" + "─" * (inner + 4) + "╮")]
    out += [edge("│") + "  " + pad(line, inner) + "  " + edge("│") for line in body]
    out.append(edge("╰" + "─" * (inner + 4) + "╯"))
    return out


def _menu(options: Sequence[str], cursor: int, styles: Styles, width: int) -> List[str]:
    window = scroll_window(cursor, OVERLAY_MAX_ROWS, len(options))
    rows = []
    for i in range(window.start, window.end):
        text = pad(options[i], width)
        rows.append(styles.selected(text) if i == cursor else text)
    return rows


def render_overlay(state: AppState, styles: Styles, now: datetime) -> List[str]:
    renderer = {
        Overlay.HELP: _help,
        Overlay.PROJECT_SELECT: _project_select,
        Overlay.PROJECT_CREATE: _project_create,
        Overlay.CONFIRM_DELETE_PROJECT: _confirm_delete_project,
        Overlay.CONFIRM_DELETE: _confirm_delete,
        Overlay.DUE_DATE: _due_date,
        Overlay.DUE_DATE_CUSTOM: _due_date_custom,
        Overlay.TAG_SELECT: _tag_select,
        Overlay.TAG_CREATE: _tag_create,
        Overlay.CONFIRM_DELETE_TAG: _confirm_delete_tag,
        Overlay.RECURRENCE_SELECT: _recurrence,
        Overlay.TASK_DETAIL: _task_detail,
        Overlay.THEME_SELECT: _theme,
    }[state.overlay]
    return renderer(state, styles, now)


def _help(state: AppState, styles: Styles, now: datetime) -> List[str]:
    sections = (
        ("Navigation", (("↑/k, ↓/j", "Move up/down"),
                        ("←/h, →/l", "Move between columns (board)"),
                        (KEYS.toggle_view.help_key, "Switch view (List/Board)"))),
        ("Status", (("Enter", "Forward (todo → doing → done)"),
                    (KEYS.backward.help_key, "Backward (done → doing → todo)"))),
        ("Actions", ((KEYS.add.help_key, "Add new task"),
                     (KEYS.edit.help_key, "Edit task title"),
                     (KEYS.done.help_key, "Toggle done"),
                     (KEYS.delete.help_key, "Delete task"),
                     (KEYS.due.help_key, "Set due date"),
                     (KEYS.tags.help_key, "Set tags"),
                     (KEYS.recurrence.help_key, "Set recurrence"),
                     ("1/2/3/0", "Set priority (high/med/low/none)"),
                     (KEYS.detail.help_key, "View task detail"))),
        ("Filter & Search", ((KEYS.search.help_key, "Search tasks"),
                             (KEYS.project.help_key, "Select project"),
                             (KEYS.toggle_done.help_key, "Toggle Done section"),
                             (KEYS.clear_search.help_key, "Clear search"))),
        ("General", ((KEYS.theme.help_key, "Select theme"),
                     (KEYS.help.help_key, "Show this help"),
                     (KEYS.quit.help_key, "Quit"))),
    )
    lines = [styles.header("Keyboard Shortcuts")]
    for title, entries in sections:
        lines += ["", styles.accent(title)]
        lines += [f"  {key:<12}{text}" for key, text in entries]
    lines += ["", styles.muted("Press any key to close")]
    return draw_box(lines, styles)


def _project_select(state: AppState, styles: Styles, now: datetime) -> List[str]:
    options = ["All Projects"] + [f"{p.name} ({p.done_count}/{p.task_count})" for p in state.projects]
    lines = [styles.header("Select Project"), ""]
    lines += _menu(options, state.overlay_cursor, styles, 44)
    lines += ["", styles.muted("Enter: select  n: new  x: delete  Esc: cancel")]
    return draw_box(lines, styles, min_width=44)


def _project_create(state: AppState, styles: Styles, now: datetime) -> List[str]:
    name = state.project_form_name or "_"
    desc = state.project_form_desc or "(optional)"
    fields = [f"  Name: {name}", f"  Description: {desc}"]
    rendered = [
        styles.selected(pad(text, 39)) if state.project_form_focus == i else text
        for i, text in enumerate(fields)
    ]
    lines = [styles.header("Create Project"), "", rendered[0], "", rendered[1], "",
             styles.muted("Tab: switch  Enter: create  Esc: cancel")]
    return draw_box(lines, styles, min_width=39)


def _confirm_delete_project(state: AppState, styles: Styles, now: datetime) -> List[str]:
    index = state.overlay_cursor - 1
    if not 0 <= index < len(state.projects):
        return []
    lines = [styles.header("Delete Project?"), "", styles.badge(state.projects[index].name),
             styles.muted("Tasks will be moved to Inbox."), "", styles.muted("y: yes  n: no")]
    return draw_box(lines, styles, danger=True)


def _confirm_delete(state: AppState, styles: Styles, now: datetime) -> List[str]:
    task = selected_task(state)
    if task is None:
        return []
    lines = [styles.header("Delete Task?"), "", styles.title(truncate(task.title, 50)), "",
             styles.muted("y: yes  n: no")]
    return draw_box(lines, styles, danger=True)


def _due_date(state: AppState, styles: Styles, now: datetime) -> List[str]:
    lines = [styles.header("Set Due Date"), ""]
    lines += _menu(DUE_OPTIONS, state.overlay_cursor, styles, 24)
    lines += ["", styles.muted("Enter: select  Esc: cancel")]
    return draw_box(lines, styles, min_width=24)


def _due_date_custom(state: AppState, styles: Styles, now: datetime) -> List[str]:
    if state.due_form_value:
        field = state.due_form_value + "▌"
    else:
        field = "▌" + styles.muted(custom_due_placeholder(now))
    lines = [styles.header("Custom Due Date"), "", "Format: YYYY-MM-DD", "", "[ " + pad(field, 12) + " ]", "",
             styles.muted("Tab: autocomplete  Enter: confirm  Esc: back")]
    return draw_box(lines, styles)


def _tag_select(state: AppState, styles: Styles, now: datetime) -> List[str]:
    task = selected_task(state)
    options = [("✓ " if task and task.has_tag(tag.id) else "  ") + tag.name for tag in state.tags]
    options.append("+ New tag...")
    lines = [styles.header("Select Tags"), ""]
    lines += _menu(options, state.overlay_cursor, styles, 39)
    lines += ["", styles.muted("Enter: toggle  x: delete  Esc: cancel")]
    return draw_box(lines, styles, min_width=39)


def _tag_create(state: AppState, styles: Styles, now: datetime) -> List[str]:
    field = state.tag_form_name + "▌" if state.tag_form_name else "▌" + styles.muted("Tag name...")
    lines = [styles.header("Create Tag"), "", "[ " + pad(field, 25) + " ]", "",
             styles.muted("Enter: create  Esc: back")]
    return draw_box(lines, styles)


def _confirm_delete_tag(state: AppState, styles: Styles, now: datetime) -> List[str]:
    if state.overlay_cursor >= len(state.tags):
        return []
    tag = state.tags[state.overlay_cursor]
    lines = [styles.header("Delete Tag?"), "", styles.tag(tag.name, tag.color),
             styles.muted("This will remove the tag from all tasks."), "", styles.muted("y: yes  n: no")]
    return draw_box(lines, styles, danger=True)


def _recurrence(state: AppState, styles: Styles, now: datetime) -> List[str]:
    task = selected_task(state)
    if task is None:
        return []
    options = [p.value.capitalize() for p in RECURRENCE_OPTIONS]
    lines = [styles.header("Set Recurrence"), ""]
    if task.recurrence is not None:
        options.append("Remove")
        lines += [styles.muted(f"Current: {task.recurrence.describe()}"), ""]
    lines += _menu(options, state.overlay_cursor, styles, 20)
    lines += ["", styles.muted("↑/↓: select  Enter: confirm  Esc: cancel")]
    return draw_box(lines, styles, min_width=20)


def _task_detail(state: AppState, styles: Styles, now: datetime) -> List[str]:
    task = selected_task(state)
    if task is None:
        return []
    project = next((p.name for p in state.projects if p.id == task.project_id), "None")
    priority = f"{task.priority.icon or '-'} {task.priority.label}"
    due = task.due_date.strftime("%Y-%m-%d (%a)") if task.due_date else "Not set"
    sections = [("Project", [project]), ("Title", [task.title]), ("Status", [STATUS_LABELS[task.status]]),
                ("Priority", [priority]), ("Due Date", [due])]
    if task.is_done and task.completed_at is not None:
        completed = [task.completed_at.strftime("%Y-%m-%d %H:%M")]
        if task.due_date is not None:
            completed.append(_lateness(task))
        sections.append(("Completed At", completed))
    sections.append(("Tags", [", ".join(t.name for t in task.tags) or "No tags"]))
    if task.recurrence is not None:
        sections.append(("Recurrence", [task.recurrence.describe()]))
    if task.created_at is not None:
        sections.append(("Created At", [task.created_at.strftime("%Y-%m-%d %H:%M")]))

    lines = [styles.header("Task Detail")]
    for title, values in sections:
        lines += ["", styles.accent(title)]
        lines += ["  " + truncate(value, 54) for value in values]
    lines += ["", styles.muted("Press any key to close")]
    return draw_box(lines, styles, min_width=56)


def _lateness(task: Task) -> str:
    delta = completion_delta(task.completed_at, task.due_date) if task.completed_at else None
    if not delta:
        return "(On time)"
    if delta > 0:
        return f"({delta} days late)"
    return f"({-delta} days early)"


def _theme(state: AppState, styles: Styles, now: datetime) -> List[str]:
    lines = [styles.header("Select Theme"), ""]
    for i, name in enumerate(THEME_NAMES):
        check = "✓ " if name == state.theme_name else "  "
        text = pad(f"{check}{styles.swatch(THEMES[name])} {THEMES[name].name}", 24)
        lines.append(styles.selected(text) if i == state.overlay_cursor else text)
    lines += ["", styles.muted("↑/↓: select  Enter: apply  Esc: cancel")]
    return draw_box(lines, styles, min_width=24)
