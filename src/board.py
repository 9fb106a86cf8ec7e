"""Board rendering: three status columns, each an independently scrolling window.

Every column is exactly ``body`` lines tall (title, blank, window rows,
indicator) so the board never reflows while the cursor moves.
Also hosts the text-measuring helpers the list renderer shares.
"""
from __future__ import annotations
import re
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from dates import completion_delta, due_label, short_date
from models import Status, Task
from theme import Styles
from viewport import board_rows, position_indicator, scroll_window

STATUSES: Tuple[Status, ...] = (Status.TODO, Status.DOING, Status.DONE)
HEADER_TITLES: Dict[Status, str] = {Status.TODO: "Todo", Status.DOING: "Doing", Status.DONE: "Done"}
MIN_COL_WIDTH = 18
SEP = " | "
ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")
ELLIPSIS = "..."


# -------------------- text helpers --------------------
def visible_len(s: str) -> int:
    return len(ANSI_RE.sub('', s))


def pad(s: str, width: int) -> str:
    gap = width - visible_len(s)
    return s + ' ' * gap if gap > 0 else s


def truncate(text: str, width: int) -> str:
    """Cut plain ``text`` to ``width`` characters, marking the cut with '...'."""
    if len(text) <= width:
        return text
    if width <= len(ELLIPSIS):
        return text[:max(0, width)]
    return text[:width - len(ELLIPSIS)] + ELLIPSIS


def completion_text(task: Task, with_time: bool = False) -> str:
    """'✓ 26/1/9' plus the signed day offset against the due date, if any."""
    if task.completed_at is None:
        return ""
    stamp = task.completed_at.strftime("%H:%M")
    text = f"✓ {short_date(task.completed_at)}" + (f" {stamp}" if with_time else "")
    delta = completion_delta(task.completed_at, task.due_date)
    if delta:
        offset = f"+{delta}d" if delta > 0 else f"{delta}d"
        text += f" ({offset})" if with_time else f" {offset}"
    return text


def render_window(
    styles: Styles,
    items: Sequence[Task],
    cursor: int,
    focused: bool,
    visible: int,
    start: int,
    row: Callable[[Task, bool], str],
    empty_text: str,
    indicator_suffix: str = "",
) -> List[str]:
    """Render one scrollable region as exactly ``visible + 1`` lines."""
    window = scroll_window(cursor, visible, len(items), start)
    lines: List[str] = []
    if not items:
        lines.append(styles.muted(empty_text))
    for i in range(window.start, window.end):
        lines.append(row(items[i], focused and i == cursor))
    lines.extend([""] * (visible - len(lines)))
    lines.append(styles.muted(position_indicator(cursor, len(items), visible, indicator_suffix)))
    return lines


class Board:
    def __init__(self, styles: Styles, now: Optional[datetime] = None):
        self.styles = styles
        self.now = now or datetime.now()

    def render(
        self,
        columns: Sequence[Sequence[Task]],
        focused_col: int,
        cursors: Sequence[int],
        scrolls: Sequence[int],
        width: int,
        body: int,
    ) -> List[str]:
        widths = self._compute_column_widths(width)
        rows = board_rows(body)
        cells: List[List[str]] = []
        for idx, status in enumerate(STATUSES):
            col_width = widths[status]
            focused = idx == focused_col

            def row(task: Task, selected: bool, col_width: int = col_width) -> str:
                return self._task_line(task, selected, col_width)

            lines = [self._title(status, len(columns[idx]), focused), ""]
            lines += render_window(self.styles, columns[idx], cursors[idx], focused, rows,
                                   scrolls[idx], row, "(empty)")
            cells.append(lines)
        sep = self.styles.border(SEP)
        return [
            sep.join(pad(cells[c][r], widths[s]) for c, s in enumerate(STATUSES)).rstrip()
            for r in range(body)
        ]

    # ---- width calculation ----
    def _compute_column_widths(self, term_width: int) -> Dict[Status, int]:
        sep_total = len(SEP) * (len(STATUSES) - 1)
        space = max(term_width - sep_total, len(STATUSES) * MIN_COL_WIDTH)
        widths = {s: max(MIN_COL_WIDTH, space // len(STATUSES)) for s in STATUSES}
        extra = space - sum(widths.values())
        i = 0
        while extra > 0:
            widths[STATUSES[i % len(STATUSES)]] += 1
            extra -= 1
            i += 1
        return widths

    # ---- cells ----
    def _title(self, status: Status, count: int, focused: bool) -> str:
        text = f" {HEADER_TITLES[status]} ({count}) "
        if focused:
            return self.styles.tab(text, True)
        return self.styles.status(text, status)

    def _task_line(self, task: Task, selected: bool, width: int) -> str:
        s = self.styles
        prefix_plain = f"{task.priority.icon} " if task.priority.icon else ""
        prefix = f"{s.priority(task.priority)} " if prefix_plain else ""
        if task.is_done:
            suffix_plain = completion_text(task)
            suffix = s.muted(suffix_plain)
        elif task.due_date is not None:
            label, kind = due_label(task.due_date, self.now)
            suffix_plain = f"· {label}"
            suffix = s.due(suffix_plain, kind)
        else:
            suffix_plain = suffix = ""
        if suffix_plain:
            suffix_plain, suffix = " " + suffix_plain, " " + suffix
        room = max(5, width - len(prefix_plain) - len(suffix_plain))
        title = s.title(truncate(task.title, room), done=task.is_done)
        line = prefix + title + suffix
        if selected:
            return s.selected(pad(line, width))
        return line
