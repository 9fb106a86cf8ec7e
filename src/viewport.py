"""Windowing and layout geometry shared by the state machine and the renderer.

Every scrollable region (active list, done list, each board column) shows a
window of ``visible`` rows followed by one indicator line, so a region always
occupies ``visible + 1`` output rows whatever it contains.

Screen layout, top to bottom: header, blank, [input line, blank], body,
blank, status bar.
"""
from __future__ import annotations
from dataclasses import dataclass

HEADER_ROWS = 2
FOOTER_ROWS = 2
INPUT_ROWS = 2
MIN_BODY_HEIGHT = 8
MIN_ACTIVE_ROWS = 3
DONE_HEADER_ROWS = 2  # blank + "Done (n)" line
COLUMN_CHROME_ROWS = 3  # title, blank, indicator
MARGIN = 2
MIN_CONTENT_WIDTH = 40


@dataclass(frozen=True)
class Window:
    start: int
    end: int

    def __len__(self) -> int:
        return self.end - self.start

    def __contains__(self, index: object) -> bool:
        return isinstance(index, int) and self.start <= index < self.end


def scroll_window(cursor: int, visible: int, count: int, start: int = 0) -> Window:
    """Return the slice of ``count`` items that keeps ``cursor`` on screen.

    ``start`` is the previous window start. The window only moves when the
    cursor leaves it, and then only by as much as needed.
    """
    if count <= 0 or visible <= 0:
        return Window(0, 0)
    cursor = min(max(cursor, 0), count - 1)
    start = min(max(start, 0), max(0, count - visible))
    if cursor < start:
        start = cursor
    elif cursor >= start + visible:
        start = cursor - visible + 1
    return Window(start, min(count, start + visible))


def position_indicator(cursor: int, count: int, visible: int, suffix: str = "") -> str:
    """``(n/total)`` when the region scrolls, empty otherwise."""
    if count <= visible:
        return ""
    label = f"{cursor + 1}/{count}"
    if suffix:
        label += f" {suffix}"
    return f"({label})"


def body_height(height: int, input_active: bool = False) -> int:
    rows = height - HEADER_ROWS - FOOTER_ROWS - (INPUT_ROWS if input_active else 0)
    return max(MIN_BODY_HEIGHT, rows)


def content_width(width: int) -> int:
    return max(MIN_CONTENT_WIDTH, width - 2 * MARGIN)


@dataclass(frozen=True)
class ListLayout:
    active_rows: int
    done_rows: int
    show_done_header: bool

    @property
    def done_expanded(self) -> bool:
        return self.done_rows > 0


def list_layout(body: int, n_active: int, n_done: int, collapsed: bool) -> ListLayout:
    """Split the list body between the active and done sections.

    The active section keeps at least three rows while the done section is
    expanded; the done section never gets more rows than it has items.
    """
    if n_done == 0:
        return ListLayout(max(1, body - 1), 0, False)
    if collapsed:
        return ListLayout(max(1, body - DONE_HEADER_ROWS - 1), 0, True)
    available = body - DONE_HEADER_ROWS - 2
    active_needed = min(n_active, available // 2)
    done_rows = min(available - active_needed, n_done)
    active_rows = available - done_rows
    if active_rows < MIN_ACTIVE_ROWS:
        active_rows = MIN_ACTIVE_ROWS
        done_rows = available - active_rows
    return ListLayout(active_rows, max(1, done_rows), True)


def board_rows(body: int) -> int:
    return max(1, body - COLUMN_CHROME_ROWS)
