"""Recurrence engine: next-due arithmetic and the complete-with-recurrence workflow.

Decisions:
- Month and year steps follow plain calendar rollover: the day of month is
  kept and any overflow spills into the following month
  (Jan 31 + 1 month -> Mar 3 in a non-leap year, Feb 29 + 1 year -> Mar 1).
- The whole completion workflow runs inside one store transaction, so a
  failure while spawning the next occurrence leaves the original task
  untouched instead of half-completed.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional, Tuple

from dates import end_of_day
from errors import ValidationError
from models import RecurrencePattern, Status, Task

if TYPE_CHECKING:  # pragma: no cover
    from storage import Store

logger = logging.getLogger(__name__)


def _add_months(moment: datetime, months: int) -> datetime:
    total = moment.month - 1 + months
    first = moment.replace(year=moment.year + total // 12, month=total % 12 + 1, day=1)
    return first + timedelta(days=moment.day - 1)


def calculate_next_due(pattern: RecurrencePattern, interval: int, start: datetime) -> datetime:
    """Return ``start`` advanced by ``interval`` units of ``pattern``."""
    if interval < 1:
        raise ValidationError(f"recurrence interval must be positive, got {interval}")
    if pattern is RecurrencePattern.DAILY:
        return start + timedelta(days=interval)
    if pattern is RecurrencePattern.WEEKLY:
        return start + timedelta(days=7 * interval)
    if pattern is RecurrencePattern.MONTHLY:
        return _add_months(start, interval)
    return _add_months(start, 12 * interval)


def parse_repeat(raw: str) -> Tuple[RecurrencePattern, int]:
    """Parse ``daily`` or ``daily:2`` style recurrence specs."""
    name, _, count = raw.partition(":")
    try:
        pattern = RecurrencePattern.parse(name)
    except ValueError as exc:
        raise ValidationError(str(exc)) from None
    interval = 1
    if count:
        if not count.strip().isdigit() or int(count) < 1:
            raise ValidationError(f"invalid recurrence interval: {count}")
        interval = int(count)
    return pattern, interval


@dataclass(frozen=True)
class CompletionResult:
    completed: Task
    spawned: Optional[Task] = None


def complete_task_with_recurrence(store: "Store", task_id: int, now: Optional[datetime] = None) -> CompletionResult:
    """Mark a task done and, if it recurs, spawn the next occurrence.

    The recurrence record is repointed at the new task; it represents the
    series, not one instance.
    """
    now = now or datetime.now()
    with store.atomic():
        task = store.get_task(task_id)
        completed = store.update_task(task.mark_done(now))
        rec = store.get_recurrence(task_id)
        if rec is None:
            return CompletionResult(completed)

        next_due = end_of_day(calculate_next_due(rec.pattern, rec.interval, now))
        clone = store.create_task(Task(
            id=0,
            title=task.title,
            project_id=task.project_id,
            parent_id=task.parent_id,
            description=task.description,
            status=Status.TODO,
            priority=task.priority,
            due_date=next_due,
            position=task.position,
        ))
        for tag in task.tags:
            store.add_tag_to_task(clone.id, tag.id)
        store.set_recurrence(replace(rec, task_id=clone.id, next_due=next_due))
        spawned = store.get_task(clone.id)
    logger.info("task %d completed; next occurrence #%d due %s", task_id, spawned.id, next_due.date())
    return CompletionResult(completed, spawned)
