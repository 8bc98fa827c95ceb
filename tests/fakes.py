"""In-memory collaborators for exercising the appointment service."""

import asyncio
from collections import defaultdict
from collections.abc import Iterable
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID, uuid4

from embassy.repositories.appointments import DuplicateReferenceError
from embassy.schemas.appointments import (
    AppointmentFilters,
    AppointmentStatus,
    AppointmentType,
)
from embassy.services.identifiers import format_reference
from embassy.services.notification_service import AppointmentEvent

# A Monday well after the fixed clock below
BOOKING_DAY = date(2030, 1, 7)
NOW = datetime(2030, 1, 1, 8, 0, tzinfo=UTC)


def at(hour: int, minute: int = 0, day: date = BOOKING_DAY) -> datetime:
    """UTC instant on the booking day."""
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=UTC)


class InMemoryAppointmentRepository:
    """AppointmentRepository keeping rows in dicts.

    Each asyncio task gets its own pending writes, applied on commit and
    dropped on rollback, and calendar-day locks are held until either happens.
    """

    def __init__(self) -> None:
        self.committed: dict[UUID, dict[str, Any]] = {}
        self._pending: dict[Any, dict[UUID, dict[str, Any]]] = defaultdict(dict)
        self._day_locks: dict[date, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._held: dict[Any, list[asyncio.Lock]] = defaultdict(list)
        self.locked_days: list[date] = []
        self.commits = 0
        self.rollbacks = 0

    @staticmethod
    def _task() -> Any:
        return asyncio.current_task()

    def _view(self) -> dict[UUID, dict[str, Any]]:
        view = dict(self.committed)
        view.update(self._pending.get(self._task(), {}))
        return view

    def seed(self, **fields: Any) -> dict[str, Any]:
        """Store a committed appointment, filling unspecified columns."""
        record: dict[str, Any] = {
            "id": uuid4(),
            "appointment_number": format_reference(
                AppointmentType.CONSULTATION, NOW, len(self.committed) + 9000
            ),
            "requester_id": uuid4(),
            "assigned_staff_id": None,
            "appointment_type": AppointmentType.CONSULTATION.value,
            "scheduled_date": at(10),
            "duration": 30,
            "status": AppointmentStatus.SCHEDULED.value,
            "priority": "normal",
            "notes": None,
            "special_requirements": None,
            "documents_required": None,
            "interpreter_required": False,
            "interpreter_language": None,
            "accessibility_needs": None,
            "reminder_sent": False,
            "reminder_date": None,
            "confirmed_by": None,
            "confirmed_at": None,
            "started_at": None,
            "completed_at": None,
            "outcome": None,
            "follow_up_required": False,
            "follow_up_date": None,
            "cancellation_reason": None,
            "cancelled_by": None,
            "cancelled_at": None,
            "created_at": NOW,
            "updated_at": NOW,
        }
        record.update(fields)
        self.committed[record["id"]] = record
        return dict(record)

    async def insert(self, values: dict[str, Any]) -> dict[str, Any]:
        numbers = {row["appointment_number"] for row in self._view().values()}
        if values["appointment_number"] in numbers:
            raise DuplicateReferenceError(values["appointment_number"])
        self._pending[self._task()][values["id"]] = dict(values)
        return dict(values)

    async def find_by_id(
        self, appointment_id: UUID, for_update: bool = False
    ) -> dict[str, Any] | None:
        record = self._view().get(appointment_id)
        return dict(record) if record else None

    async def find_by_date_range(
        self,
        start: datetime,
        end: datetime,
        exclude_statuses: Iterable[AppointmentStatus] = (),
    ) -> list[dict[str, Any]]:
        # Yield so concurrent bookings interleave between read and write.
        await asyncio.sleep(0)
        excluded = {status.value for status in exclude_statuses}
        rows = [
            dict(row)
            for row in self._view().values()
            if start <= row["scheduled_date"] < end and row["status"] not in excluded
        ]
        return sorted(rows, key=lambda row: row["scheduled_date"])

    async def update(self, appointment_id: UUID, values: dict[str, Any]) -> dict[str, Any]:
        record = {**self._view()[appointment_id], **values}
        self._pending[self._task()][appointment_id] = record
        return dict(record)

    async def list_appointments(
        self,
        filters: AppointmentFilters,
        requester_id: UUID | None = None,
    ) -> tuple[int, list[dict[str, Any]]]:
        rows = sorted(self._view().values(), key=lambda row: row["scheduled_date"])
        if requester_id is not None:
            rows = [row for row in rows if row["requester_id"] == requester_id]
        if filters.status:
            rows = [row for row in rows if row["status"] == filters.status.value]
        if filters.appointment_type:
            rows = [
                row for row in rows if row["appointment_type"] == filters.appointment_type.value
            ]
        if filters.from_date:
            rows = [row for row in rows if row["scheduled_date"] >= filters.from_date]
        if filters.to_date:
            rows = [row for row in rows if row["scheduled_date"] < filters.to_date]
        offset = (filters.page - 1) * filters.page_size
        return len(rows), [dict(row) for row in rows[offset : offset + filters.page_size]]

    async def lock_calendar_day(self, day: date) -> None:
        lock = self._day_locks[day]
        await lock.acquire()
        self._held[self._task()].append(lock)
        self.locked_days.append(day)

    def _release(self) -> None:
        for lock in self._held.pop(self._task(), []):
            lock.release()

    async def commit(self) -> None:
        self.committed.update(self._pending.pop(self._task(), {}))
        self.commits += 1
        self._release()

    async def rollback(self) -> None:
        self._pending.pop(self._task(), None)
        self.rollbacks += 1
        self._release()


class RecordingNotifier:
    """AppointmentNotifier that remembers the events it received."""

    def __init__(self) -> None:
        self.events: list[tuple[UUID, AppointmentEvent]] = []
        self.fail_with: Exception | None = None

    async def appointment_event(self, record: dict[str, Any], event: AppointmentEvent) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.events.append((record["id"], event))


class ScriptedReferenceGenerator:
    """Hands out references from a list, then counts upwards."""

    def __init__(self, references: list[str] | None = None) -> None:
        self.references = list(references or [])
        self.counter = 0

    def generate(self, appointment_type: AppointmentType, now: datetime) -> str:
        if self.references:
            return self.references.pop(0)
        self.counter += 1
        return format_reference(appointment_type, now, self.counter)
