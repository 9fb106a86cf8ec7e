"""Domain values for the task tracker.

Decisions:
- Values are frozen dataclasses; every mutation returns a new instance via
  ``dataclasses.replace`` so state held by the UI is never aliased by a
  command running in the worker thread.
- Status keys are "todo", "doing", "done" (stored verbatim in the database).
- ``completed_at`` is set iff status is done; the ``mark_*`` helpers keep that
  invariant and the store re-checks it on every write.
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum, IntEnum
from typing import Optional, Tuple

INBOX_ID = 1
INBOX_NAME = "Inbox"

DEFAULT_TAG_COLOR = "#808080"
DEFAULT_TAG_COLORS: Tuple[str, ...] = (
    "#E57373",
    "#81C784",
    "#64B5F6",
    "#FFD54F",
    "#BA68C8",
    "#4DD0E1",
    "#FF8A65",
    "#A1887F",
)


class Status(str, Enum):
    TODO = "todo"
    DOING = "doing"
    DONE = "done"

    @classmethod
    def parse(cls, raw: str) -> "Status":
        key = raw.strip().lower()
        if key == "in-progress":  # legacy spelling
            key = "doing"
        for status in cls:
            if status.value == key:
                return status
        raise ValueError(f"unknown status: {raw}")


class Priority(IntEnum):
    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @property
    def label(self) -> str:
        return ("None", "Low", "Medium", "High")[self]

    @property
    def icon(self) -> str:
        return ("", "↓", "→", "↑")[self]

    @classmethod
    def parse(cls, raw: str) -> "Priority":
        key = raw.strip().lower()
        if key in ("low", "l", "1"):
            return cls.LOW
        if key in ("medium", "med", "m", "2"):
            return cls.MEDIUM
        if key in ("high", "h", "3"):
            return cls.HIGH
        if key in ("none", "n", "0", ""):
            return cls.NONE
        raise ValueError(f"unknown priority: {raw}")


class RecurrencePattern(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @property
    def unit(self) -> str:
        return {"daily": "days", "weekly": "weeks", "monthly": "months", "yearly": "years"}[self.value]

    @classmethod
    def parse(cls, raw: str) -> "RecurrencePattern":
        key = raw.strip().lower()
        aliases = {"d": "daily", "w": "weekly", "m": "monthly", "y": "yearly"}
        key = aliases.get(key, key)
        for pattern in cls:
            if pattern.value == key:
                return pattern
        raise ValueError(f"unknown recurrence pattern: {raw}")


@dataclass(frozen=True)
class Tag:
    id: int
    name: str
    color: str = DEFAULT_TAG_COLOR


@dataclass(frozen=True)
class Recurrence:
    """The recurring series attached to the task that is currently live.

    Fields:
        task_id: Task the series currently points at (repointed on completion).
        pattern: Unit of repetition.
        interval: Positive multiplier of the unit.
        next_due: Due date of the upcoming occurrence.
        id: Store identity (None until persisted).
    """
    task_id: int
    pattern: RecurrencePattern
    interval: int
    next_due: datetime
    id: Optional[int] = None

    def describe(self) -> str:
        if self.interval == 1:
            return self.pattern.value
        return f"every {self.interval} {self.pattern.unit}"


@dataclass(frozen=True)
class Project:
    id: int
    name: str
    description: str = ""
    created_at: Optional[datetime] = None
    task_count: int = 0
    done_count: int = 0

    @property
    def progress(self) -> float:
        if self.task_count == 0:
            return 0.0
        return self.done_count / self.task_count

    @property
    def is_inbox(self) -> bool:
        return self.id == INBOX_ID


@dataclass(frozen=True)
class Task:
    """A single task.

    Fields:
        id: Store identity (0 until persisted).
        title: Single-line title.
        project_id: Owning project; None means the Inbox.
        parent_id: Parent task for subtasks; None for top-level tasks.
        description: Free text, searched together with the title.
        status: One of todo / doing / done.
        priority: none / low / medium / high.
        due_date: Optional deadline (normalised to 23:59 local time).
        created_at: Creation timestamp.
        completed_at: Completion timestamp, present only while done.
        position: Manual ordering key (ascending).
        tags: Tags attached to the task, sorted by name.
        recurrence: Live recurrence series owned by this task, if any.
    """
    id: int
    title: str
    project_id: Optional[int] = None
    parent_id: Optional[int] = None
    description: str = ""
    status: Status = Status.TODO
    priority: Priority = Priority.NONE
    due_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    position: int = 0
    tags: Tuple[Tag, ...] = field(default_factory=tuple)
    recurrence: Optional[Recurrence] = None

    # -------------------- status transitions --------------------
    def mark_done(self, now: Optional[datetime] = None) -> "Task":
        return replace(self, status=Status.DONE, completed_at=now or datetime.now())

    def mark_doing(self) -> "Task":
        return replace(self, status=Status.DOING, completed_at=None)

    def mark_todo(self) -> "Task":
        return replace(self, status=Status.TODO, completed_at=None)

    # -------------------- queries --------------------
    @property
    def is_done(self) -> bool:
        return self.status is Status.DONE

    def has_tag(self, tag_id: int) -> bool:
        return any(t.id == tag_id for t in self.tags)

    def __repr__(self) -> str:  # pragma: no cover - convenience only
        return f"Task(id={self.id}, title={self.title}, status={self.status.value})"
