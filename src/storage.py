"""Persistence gateway: SQLite through SQLModel.

Rows live in the ``*Row`` table classes below and never leave this module;
callers only ever see the frozen values from ``models``.

Decisions:
- Tasks created without a project are stored under the Inbox (id 1), which is
  created on first open and can never be deleted.
- Deleting a project moves its tasks to the Inbox; deleting a tag drops its
  links only; deleting a task drops its links, its recurrence and its subtasks.
- ``atomic()`` groups several gateway calls into one transaction; calls made
  outside it commit individually.
"""
from __future__ import annotations
import logging
import re
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import Field, Session, SQLModel, col, create_engine, or_, select

from errors import ConstraintError, GatewayError, NotFoundError, ValidationError
from models import (
    DEFAULT_TAG_COLORS,
    INBOX_ID,
    INBOX_NAME,
    Priority,
    Project,
    Recurrence,
    RecurrencePattern,
    Status,
    Tag,
    Task,
)

logger = logging.getLogger(__name__)

MEMORY_URL = "sqlite://"
HEX_COLOR = re.compile(r"#[0-9A-Fa-f]{6}")


# -------------------- tables --------------------
class ProjectRow(SQLModel, table=True):
    __tablename__ = "projects"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: str = ""
    created_at: datetime = Field(default_factory=datetime.now)


class TagRow(SQLModel, table=True):
    __tablename__ = "tags"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    color: str = "#808080"


class TaskRow(SQLModel, table=True):
    __tablename__ = "tasks"

    id: Optional[int] = Field(default=None, primary_key=True)
    project_id: Optional[int] = Field(default=None, foreign_key="projects.id", index=True)
    parent_id: Optional[int] = Field(default=None, foreign_key="tasks.id", index=True)
    title: str
    description: str = ""
    status: str = Field(default=Status.TODO.value, index=True)
    priority: int = 0
    due_date: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    position: int = 0


class TaskTagLink(SQLModel, table=True):
    __tablename__ = "task_tags"

    task_id: int = Field(foreign_key="tasks.id", primary_key=True)
    tag_id: int = Field(foreign_key="tags.id", primary_key=True)


class RecurrenceRow(SQLModel, table=True):
    __tablename__ = "recurrences"

    id: Optional[int] = Field(default=None, primary_key=True)
    task_id: int = Field(foreign_key="tasks.id", unique=True)
    pattern: str
    interval: int = 1
    next_due: datetime


@dataclass(frozen=True)
class TaskFilter:
    """Listing filter; top-level tasks only unless ``parent_id`` or ``include_subtasks``."""
    project_id: Optional[int] = None
    status: Optional[Status] = None
    parent_id: Optional[int] = None
    tag_ids: Tuple[int, ...] = ()
    has_due_date: Optional[bool] = None
    search: str = ""
    include_subtasks: bool = False
    limit: int = 0


def _create_engine(url: str):
    if url == MEMORY_URL or url.endswith(":memory:"):
        return create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if url.startswith("sqlite"):
        return create_engine(url, echo=False, connect_args={"check_same_thread": False})
    return create_engine(url, echo=False, pool_pre_ping=True)


class Store:
    def __init__(self, url: str = MEMORY_URL):
        self.url = url
        self.engine = _create_engine(url)
        self._session: Optional[Session] = None
        try:
            SQLModel.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise GatewayError(f"open database: {exc}") from exc
        self._ensure_inbox()

    @classmethod
    def open(cls, path: Path) -> "Store":
        path.parent.mkdir(parents=True, exist_ok=True)
        return cls(f"sqlite:///{path}")

    def close(self) -> None:
        self.engine.dispose()

    # -------------------- sessions --------------------
    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        if self._session is not None:
            yield self._session
            return
        try:
            with Session(self.engine) as session:
                yield session
                session.commit()
        except SQLAlchemyError as exc:
            raise GatewayError(str(exc)) from exc

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Run every gateway call in the block inside a single transaction."""
        if self._session is not None:
            yield
            return
        try:
            with Session(self.engine) as session:
                self._session = session
                try:
                    yield
                    session.commit()
                except BaseException:
                    session.rollback()
                    raise
                finally:
                    self._session = None
        except SQLAlchemyError as exc:
            raise GatewayError(str(exc)) from exc

    def _ensure_inbox(self) -> None:
        with self._session_scope() as session:
            if session.get(ProjectRow, INBOX_ID) is None:
                session.add(ProjectRow(id=INBOX_ID, name=INBOX_NAME, description="Default project"))

    # -------------------- conversion --------------------
    def _tags_of(self, session: Session, task_id: int) -> List[Tag]:
        stmt = (
            select(TagRow)
            .join(TaskTagLink, col(TaskTagLink.tag_id) == col(TagRow.id))
            .where(TaskTagLink.task_id == task_id)
            .order_by(col(TagRow.name))
        )
        return [_to_tag(row) for row in session.exec(stmt)]

    def _recurrence_row(self, session: Session, task_id: int) -> Optional[RecurrenceRow]:
        return session.exec(select(RecurrenceRow).where(RecurrenceRow.task_id == task_id)).first()

    def _to_task(self, session: Session, row: TaskRow) -> Task:
        assert row.id is not None
        rec_row = self._recurrence_row(session, row.id)
        return Task(
            id=row.id,
            title=row.title,
            project_id=row.project_id,
            parent_id=row.parent_id,
            description=row.description,
            status=Status(row.status),
            priority=Priority(row.priority),
            due_date=row.due_date,
            created_at=row.created_at,
            completed_at=row.completed_at,
            position=row.position,
            tags=tuple(self._tags_of(session, row.id)),
            recurrence=_to_recurrence(rec_row) if rec_row else None,
        )

    def _task_row(self, session: Session, task_id: int) -> TaskRow:
        row = session.get(TaskRow, task_id)
        if row is None:
            raise NotFoundError(f"task not found: {task_id}")
        return row

    def _tag_row(self, session: Session, tag_id: int) -> TagRow:
        row = session.get(TagRow, tag_id)
        if row is None:
            raise NotFoundError(f"tag not found: {tag_id}")
        return row

    # -------------------- tasks --------------------
    def create_task(self, task: Task) -> Task:
        title = task.title.strip()
        if not title:
            raise ValidationError("Task title is required")
        with self._session_scope() as session:
            project_id = task.project_id if task.project_id is not None else INBOX_ID
            if session.get(ProjectRow, project_id) is None:
                raise NotFoundError(f"project not found: {project_id}")
            if task.parent_id is not None:
                self._task_row(session, task.parent_id)
            completed_at = None
            if task.status is Status.DONE:
                completed_at = task.completed_at or datetime.now()
            row = TaskRow(
                project_id=project_id,
                parent_id=task.parent_id,
                title=title,
                description=task.description,
                status=task.status.value,
                priority=int(task.priority),
                due_date=task.due_date,
                created_at=task.created_at or datetime.now(),
                completed_at=completed_at,
                position=task.position,
            )
            session.add(row)
            session.flush()
            logger.debug("created task #%s %r", row.id, title)
            return self._to_task(session, row)

    def get_task(self, task_id: int) -> Task:
        with self._session_scope() as session:
            return self._to_task(session, self._task_row(session, task_id))

    def list_tasks(self, task_filter: Optional[TaskFilter] = None) -> List[Task]:
        f = task_filter or TaskFilter()
        stmt = select(TaskRow)
        if f.tag_ids:
            stmt = (
                stmt.join(TaskTagLink, col(TaskTagLink.task_id) == col(TaskRow.id))
                .where(col(TaskTagLink.tag_id).in_(f.tag_ids))
                .distinct()
            )
        if f.project_id is not None:
            stmt = stmt.where(TaskRow.project_id == f.project_id)
        if f.status is not None:
            stmt = stmt.where(TaskRow.status == f.status.value)
        if f.parent_id is not None:
            stmt = stmt.where(TaskRow.parent_id == f.parent_id)
        elif not f.include_subtasks:
            stmt = stmt.where(col(TaskRow.parent_id).is_(None))
        if f.has_due_date is True:
            stmt = stmt.where(col(TaskRow.due_date).is_not(None))
        elif f.has_due_date is False:
            stmt = stmt.where(col(TaskRow.due_date).is_(None))
        if f.search:
            pattern = f"%{f.search}%"
            stmt = stmt.where(or_(col(TaskRow.title).ilike(pattern), col(TaskRow.description).ilike(pattern)))
        stmt = stmt.order_by(col(TaskRow.position).asc(), col(TaskRow.created_at).desc(), col(TaskRow.id).desc())
        if f.limit > 0:
            stmt = stmt.limit(f.limit)
        with self._session_scope() as session:
            return [self._to_task(session, row) for row in session.exec(stmt)]

    def get_subtasks(self, parent_id: int) -> List[Task]:
        return self.list_tasks(TaskFilter(parent_id=parent_id))

    def update_task(self, task: Task) -> Task:
        title = task.title.strip()
        if not title:
            raise ValidationError("Task title is required")
        with self._session_scope() as session:
            row = self._task_row(session, task.id)
            row.project_id = task.project_id if task.project_id is not None else INBOX_ID
            row.parent_id = task.parent_id
            row.title = title
            row.description = task.description
            row.status = task.status.value
            row.priority = int(task.priority)
            row.due_date = task.due_date
            row.position = task.position
            if task.status is Status.DONE:
                row.completed_at = task.completed_at or row.completed_at or datetime.now()
            else:
                row.completed_at = None
            session.add(row)
            session.flush()
            logger.debug("updated task #%s status=%s", row.id, row.status)
            return self._to_task(session, row)

    def delete_task(self, task_id: int) -> None:
        with self._session_scope() as session:
            self._delete_task_row(session, self._task_row(session, task_id))
            logger.debug("deleted task #%s", task_id)

    def _delete_task_row(self, session: Session, row: TaskRow) -> None:
        for child in session.exec(select(TaskRow).where(TaskRow.parent_id == row.id)).all():
            self._delete_task_row(session, child)
        for link in session.exec(select(TaskTagLink).where(TaskTagLink.task_id == row.id)).all():
            session.delete(link)
        rec_row = self._recurrence_row(session, row.id)
        if rec_row is not None:
            session.delete(rec_row)
        session.delete(row)
        session.flush()

    # -------------------- projects --------------------
    def create_project(self, name: str, description: str = "") -> Project:
        name = name.strip()
        if not name:
            raise ValidationError("Project name is required")
        with self._session_scope() as session:
            row = ProjectRow(name=name, description=description.strip())
            session.add(row)
            session.flush()
            logger.debug("created project #%s %r", row.id, name)
            return _to_project(row, 0, 0)

    def get_project(self, project_id: int) -> Project:
        for project in self.list_projects():
            if project.id == project_id:
                return project
        raise NotFoundError(f"project not found: {project_id}")

    def list_projects(self) -> List[Project]:
        with self._session_scope() as session:
            totals: Counter = Counter()
            done: Counter = Counter()
            counts = select(TaskRow.project_id, TaskRow.status).where(col(TaskRow.parent_id).is_(None))
            for project_id, status in session.exec(counts):
                totals[project_id] += 1
                if status == Status.DONE.value:
                    done[project_id] += 1
            rows = session.exec(select(ProjectRow).order_by(col(ProjectRow.id))).all()
            return [_to_project(row, totals[row.id], done[row.id]) for row in rows]

    def delete_project(self, project_id: int) -> None:
        if project_id == INBOX_ID:
            raise ConstraintError("Cannot delete Inbox project")
        with self._session_scope() as session:
            row = session.get(ProjectRow, project_id)
            if row is None:
                raise NotFoundError(f"project not found: {project_id}")
            for task_row in session.exec(select(TaskRow).where(TaskRow.project_id == project_id)).all():
                task_row.project_id = INBOX_ID
                session.add(task_row)
            session.delete(row)
            logger.debug("deleted project #%s; tasks moved to Inbox", project_id)

    # -------------------- tags --------------------
    def create_tag(self, name: str, color: Optional[str] = None) -> Tag:
        name = name.strip()
        if not name:
            raise ValidationError("Tag name is required")
        if color is not None and not HEX_COLOR.fullmatch(color):
            raise ValidationError(f"invalid tag color: {color} (expected #RRGGBB)")
        with self._session_scope() as session:
            if session.exec(select(TagRow).where(TagRow.name == name)).first() is not None:
                raise ConstraintError(f"tag already exists: {name}")
            if color is None:
                used = len(session.exec(select(TagRow.id)).all())
                color = DEFAULT_TAG_COLORS[used % len(DEFAULT_TAG_COLORS)]
            row = TagRow(name=name, color=color)
            session.add(row)
            session.flush()
            logger.debug("created tag #%s %r", row.id, name)
            return _to_tag(row)

    def get_tag(self, tag_id: int) -> Tag:
        with self._session_scope() as session:
            return _to_tag(self._tag_row(session, tag_id))

    def get_tag_by_name(self, name: str) -> Optional[Tag]:
        with self._session_scope() as session:
            row = session.exec(select(TagRow).where(TagRow.name == name.strip())).first()
            return _to_tag(row) if row else None

    def list_tags(self) -> List[Tag]:
        with self._session_scope() as session:
            return [_to_tag(row) for row in session.exec(select(TagRow).order_by(col(TagRow.name)))]

    def delete_tag(self, tag_id: int) -> None:
        with self._session_scope() as session:
            row = self._tag_row(session, tag_id)
            for link in session.exec(select(TaskTagLink).where(TaskTagLink.tag_id == tag_id)).all():
                session.delete(link)
            session.delete(row)
            logger.debug("deleted tag #%s", tag_id)

    def add_tag_to_task(self, task_id: int, tag_id: int) -> None:
        with self._session_scope() as session:
            self._task_row(session, task_id)
            self._tag_row(session, tag_id)
            if session.get(TaskTagLink, (task_id, tag_id)) is None:
                session.add(TaskTagLink(task_id=task_id, tag_id=tag_id))
                session.flush()

    def remove_tag_from_task(self, task_id: int, tag_id: int) -> None:
        with self._session_scope() as session:
            link = session.get(TaskTagLink, (task_id, tag_id))
            if link is not None:
                session.delete(link)
                session.flush()

    def get_task_tags(self, task_id: int) -> List[Tag]:
        with self._session_scope() as session:
            return self._tags_of(session, task_id)

    # -------------------- recurrences --------------------
    def set_recurrence(self, rec: Recurrence) -> Recurrence:
        """Insert or update the series; an existing id is repointed, not duplicated."""
        if rec.interval < 1:
            raise ValidationError(f"recurrence interval must be positive, got {rec.interval}")
        with self._session_scope() as session:
            self._task_row(session, rec.task_id)
            row = session.get(RecurrenceRow, rec.id) if rec.id is not None else None
            if row is None:
                row = self._recurrence_row(session, rec.task_id)
            if row is None:
                row = RecurrenceRow(task_id=rec.task_id, pattern=rec.pattern.value, interval=rec.interval,
                                    next_due=rec.next_due)
            else:
                row.task_id = rec.task_id
                row.pattern = rec.pattern.value
                row.interval = rec.interval
                row.next_due = rec.next_due
            session.add(row)
            session.flush()
            logger.debug("recurrence #%s -> task #%s (%s x%d)", row.id, row.task_id, row.pattern, row.interval)
            return _to_recurrence(row)

    def get_recurrence(self, task_id: int) -> Optional[Recurrence]:
        with self._session_scope() as session:
            row = self._recurrence_row(session, task_id)
            return _to_recurrence(row) if row else None

    def delete_recurrence(self, task_id: int) -> None:
        with self._session_scope() as session:
            row = self._recurrence_row(session, task_id)
            if row is not None:
                session.delete(row)


def _to_tag(row: TagRow) -> Tag:
    assert row.id is not None
    return Tag(id=row.id, name=row.name, color=row.color)


def _to_project(row: ProjectRow, task_count: int, done_count: int) -> Project:
    assert row.id is not None
    return Project(
        id=row.id,
        name=row.name,
        description=row.description,
        created_at=row.created_at,
        task_count=task_count,
        done_count=done_count,
    )


def _to_recurrence(row: RecurrenceRow) -> Recurrence:
    return Recurrence(
        id=row.id,
        task_id=row.task_id,
        pattern=RecurrencePattern(row.pattern),
        interval=row.interval,
        next_due=row.next_due,
    )
