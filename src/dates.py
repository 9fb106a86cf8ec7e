"""Date helpers: due-date normalisation, parsing and relative labels.

Decisions:
- Every due date is stored at 23:59 local time of its day so "due today"
  stays true for the whole day.
- Free-form parsing (CLI) goes through dateutil; the interactive custom date
  form accepts only strict YYYY-MM-DD.
"""
from __future__ import annotations
import re
from datetime import datetime, timedelta
from typing import Optional, Tuple

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from errors import ValidationError

ISO_DAY = "%Y-%m-%d"
_RELATIVE_DAYS = re.compile(r"(\d+)d")
_YEAR = re.compile(r"\d{4}")


def end_of_day(moment: Optional[datetime] = None) -> datetime:
    moment = moment or datetime.now()
    return moment.replace(hour=23, minute=59, second=0, microsecond=0)


def parse_iso_day(raw: str) -> datetime:
    """Parse a strict YYYY-MM-DD string into an end-of-day timestamp."""
    text = raw.strip()
    if not text:
        raise ValidationError("Date is required")
    try:
        parsed = datetime.strptime(text, ISO_DAY)
    except ValueError:
        raise ValidationError("Invalid date format (use YYYY-MM-DD)") from None
    return end_of_day(parsed)


def parse_date(raw: str, now: Optional[datetime] = None) -> datetime:
    """Parse today/tomorrow/next week/Nd or a calendar date.

    Calendar dates without a year resolve to the next future occurrence; a
    passed Feb 29 moves to Feb 28 of the next year.
    """
    now = now or datetime.now()
    text = raw.strip().lower()
    if not text:
        raise ValidationError("Date is required")
    today = end_of_day(now)
    if text == "today":
        return today
    if text == "tomorrow":
        return today + timedelta(days=1)
    if text in ("next week", "nextweek"):
        return today + timedelta(days=7)
    match = _RELATIVE_DAYS.fullmatch(text)
    if match:
        return today + timedelta(days=int(match.group(1)))
    try:
        parsed = date_parser.parse(raw.strip(), default=today)
    except (ValueError, OverflowError):
        raise ValidationError(f"unrecognized date format: {raw}") from None
    parsed = end_of_day(parsed)
    if not _YEAR.search(raw) and parsed < now:
        parsed += relativedelta(years=1)
    return parsed


def days_between(start: datetime, end: datetime) -> int:
    """Whole calendar days from ``start`` to ``end`` (negative if end is earlier)."""
    return (end.date() - start.date()).days


def due_label(due: datetime, now: Optional[datetime] = None) -> Tuple[str, str]:
    """Return (text, kind) where kind is overdue, today or normal."""
    now = now or datetime.now()
    diff = days_between(now, due)
    if diff < 0:
        return "Overdue", "overdue"
    if diff == 0:
        return "Today", "today"
    if diff == 1:
        return "Tomorrow", "normal"
    if diff <= 7:
        return due.strftime("%a"), "normal"
    return short_date(due), "normal"


def short_date(moment: datetime) -> str:
    """yy/m/d without zero padding, e.g. 26/1/9."""
    return f"{moment:%y}/{moment.month}/{moment.day}"


def completion_delta(completed: datetime, due: Optional[datetime]) -> Optional[int]:
    """Days between due date and completion; positive means late."""
    if due is None:
        return None
    return days_between(due, completed)
