"""Weekly time intervals and teacher schedule-conflict detection.

Intervals are half-open: `[start, end)`. Two intervals on the same
weekday conflict only when they properly overlap, so a group ending at
09:00 and another starting at 09:00 can share a teacher.

Everything here is pure; callers supply the teacher's existing
assignments (see `GroupRepository.assignments_for_teacher`).
"""

from dataclasses import dataclass
from datetime import time
from enum import Enum
from typing import Iterable, Optional

from .errors import InvalidRange, ScheduleConflict


class WeekDay(str, Enum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"


def format_time(t: time) -> str:
    return t.strftime("%H:%M")


def validate_time_range(start: time, end: time) -> None:
    """Raise `InvalidRange` unless `end` is strictly after `start`.

    Slots are wall-clock times; offset-aware values are rejected.
    """
    if start.tzinfo is not None or end.tzinfo is not None:
        raise InvalidRange("times must not carry a UTC offset")
    if end <= start:
        raise InvalidRange(
            f"end time {format_time(end)} must be after start time {format_time(start)}"
        )


@dataclass(frozen=True)
class TimeInterval:
    """A time range on one weekday; construction enforces start < end."""
    week_day: WeekDay
    start: time
    end: time

    def __post_init__(self):
        validate_time_range(self.start, self.end)

    def overlaps(self, other: "TimeInterval") -> bool:
        if self.week_day != other.week_day:
            return False
        return not (self.end <= other.start or self.start >= other.end)

    def __str__(self) -> str:
        return f"{self.week_day.value} {format_time(self.start)}-{format_time(self.end)}"


@dataclass(frozen=True)
class TeachingAssignment:
    """A teacher's commitment to teach `group_name` during `interval`."""
    id: int
    teacher_id: int
    interval: TimeInterval
    group_name: str


@dataclass(frozen=True)
class ConflictQuery:
    teacher_id: int
    candidate: TimeInterval
    exclude_assignment_id: Optional[int] = None


def find_conflict(assignments: Iterable[TeachingAssignment], query: ConflictQuery) -> Optional[TeachingAssignment]:
    """Return the first assignment that overlaps `query.candidate`, or None.

    The assignment named by `query.exclude_assignment_id` is skipped so a
    group being edited never collides with its own previous slot.
    """
    for existing in assignments:
        if query.exclude_assignment_id is not None and existing.id == query.exclude_assignment_id:
            continue
        if existing.teacher_id != query.teacher_id:
            continue
        if existing.interval.overlaps(query.candidate):
            return existing
    return None


def ensure_no_conflict(assignments: Iterable[TeachingAssignment], query: ConflictQuery) -> None:
    """Raise `ScheduleConflict` describing the colliding assignment, if any."""
    clash = find_conflict(assignments, query)
    if clash is None:
        return
    iv = clash.interval
    raise ScheduleConflict(
        f"teacher already has group '{clash.group_name}' on {iv.week_day.value} "
        f"from {format_time(iv.start)} to {format_time(iv.end)}",
        assignment=clash,
    )
