"""Slot generation and conflict detection for the office calendar.

Everything here is pure: callers pass a snapshot of the day's appointments and
get a fresh answer each time. Intervals are half-open, so an appointment ending
at 10:30 does not collide with one starting at 10:30.
"""

from collections.abc import Iterable, Iterator, Mapping
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from typing import Any, NamedTuple
from zoneinfo import ZoneInfo

from embassy.schemas.appointments import INACTIVE_STATUSES, AppointmentStatus


class TimeInterval(NamedTuple):
    """Half-open interval ``[start, end)``."""

    start: datetime
    end: datetime

    def overlaps(self, other: "TimeInterval | BookedInterval") -> bool:
        """Check whether two intervals share any instant."""
        return self.start < other.end and self.end > other.start

    @property
    def minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


class BookedInterval(NamedTuple):
    """Interval occupied by an existing appointment."""

    start: datetime
    end: datetime
    status: AppointmentStatus

    @property
    def is_active(self) -> bool:
        return self.status not in INACTIVE_STATUSES


def interval_for(start: datetime, duration_minutes: int) -> TimeInterval:
    """Build the interval an appointment of ``duration_minutes`` occupies."""
    return TimeInterval(start, start + timedelta(minutes=duration_minutes))


def booked_interval_from_record(record: Mapping[str, Any]) -> BookedInterval:
    """Read the occupied interval out of an appointment row."""
    start = record["scheduled_date"]
    return BookedInterval(
        start=start,
        end=start + timedelta(minutes=record["duration"]),
        status=AppointmentStatus(record["status"]),
    )


def office_timezone(name: str) -> tzinfo:
    """Resolve the configured office timezone."""
    if name.upper() == "UTC":
        return UTC
    return ZoneInfo(name)


def office_window(day: date, open_hour: int, close_hour: int, tz: tzinfo) -> TimeInterval:
    """Opening hours of ``day`` as an aware interval in the office timezone."""
    start = datetime.combine(day, time(hour=open_hour), tzinfo=tz)
    if close_hour == 24:
        end = datetime.combine(day + timedelta(days=1), time(), tzinfo=tz)
    else:
        end = datetime.combine(day, time(hour=close_hour), tzinfo=tz)
    return TimeInterval(start, end)


def iter_candidate_slots(window: TimeInterval, slot_minutes: int) -> Iterator[TimeInterval]:
    """
    Yield consecutive slots of ``slot_minutes`` that fit inside ``window``.

    A trailing remainder shorter than one slot is dropped.

    Raises:
        ValueError: If ``slot_minutes`` is not positive
    """
    if slot_minutes <= 0:
        raise ValueError("slot_minutes must be positive")

    step = timedelta(minutes=slot_minutes)
    current = window.start
    while current + step <= window.end:
        yield TimeInterval(current, current + step)
        current += step


def compute_slots(
    window: TimeInterval,
    slot_minutes: int,
    booked: Iterable[TimeInterval | BookedInterval],
) -> list[TimeInterval]:
    """
    Compute the free slots of a day.

    Args:
        window: Office opening interval for the day
        slot_minutes: Length of each slot
        booked: Intervals already taken; all of them block

    Returns:
        Ordered list of slots overlapping none of ``booked``
    """
    taken = list(booked)
    return [
        slot
        for slot in iter_candidate_slots(window, slot_minutes)
        if not any(slot.overlaps(interval) for interval in taken)
    ]


def find_conflicts(
    candidate: TimeInterval,
    existing: Iterable[BookedInterval],
) -> list[BookedInterval]:
    """Return the active intervals in ``existing`` that overlap ``candidate``."""
    return [
        interval
        for interval in existing
        if interval.is_active and candidate.overlaps(interval)
    ]


def conflicts(candidate: TimeInterval, existing: Iterable[BookedInterval]) -> bool:
    """Check whether ``candidate`` collides with any active appointment."""
    return any(
        interval.is_active and candidate.overlaps(interval) for interval in existing
    )
