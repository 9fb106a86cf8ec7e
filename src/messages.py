"""Events folded into the interaction state.

Result messages are produced by commands (exactly one per command); terminal
events (keys, resizes) are produced by the control loop.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple

from models import Project, Recurrence, Tag, Task


@dataclass(frozen=True)
class TasksLoaded:
    tasks: Tuple[Task, ...]


@dataclass(frozen=True)
class ProjectsLoaded:
    projects: Tuple[Project, ...]


@dataclass(frozen=True)
class TagsLoaded:
    tags: Tuple[Tag, ...]


@dataclass(frozen=True)
class TaskCreated:
    task: Task


@dataclass(frozen=True)
class TaskUpdated:
    task: Optional[Task] = None


@dataclass(frozen=True)
class TaskDeleted:
    task_id: int


@dataclass(frozen=True)
class ProjectCreated:
    project: Project


@dataclass(frozen=True)
class ProjectDeleted:
    project_id: int


@dataclass(frozen=True)
class TagCreated:
    tag: Tag


@dataclass(frozen=True)
class TagDeleted:
    tag_id: int


@dataclass(frozen=True)
class RecurrenceSet:
    recurrence: Recurrence


@dataclass(frozen=True)
class RecurrenceDeleted:
    task_id: int


@dataclass(frozen=True)
class ConfigSaved:
    theme_name: str


@dataclass(frozen=True)
class ErrorMsg:
    text: str


@dataclass(frozen=True)
class ClearStatus:
    """Clears the banner only if ``seq`` still names the banner on screen."""
    seq: int


@dataclass(frozen=True)
class KeyPressed:
    key: str


@dataclass(frozen=True)
class Resized:
    width: int
    height: int
