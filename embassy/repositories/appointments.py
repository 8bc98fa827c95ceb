"""Appointment persistence using SQLAlchemy Core."""

from collections.abc import Iterable
from datetime import date, datetime
from typing import Any, Protocol
from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, select, true, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from embassy.core.exceptions import PersistenceFailureException
from embassy.models.appointments import APPOINTMENT_NUMBER_CONSTRAINT, appointments
from embassy.schemas.appointments import AppointmentFilters, AppointmentStatus

logger = structlog.get_logger(__name__)

# First key of the two-key advisory lock; the second is the day ordinal.
CALENDAR_LOCK_NAMESPACE = 0x454D42  # "EMB"


class DuplicateReferenceError(Exception):
    """Raised when an insert collides on ``appointment_number``."""

    def __init__(self, appointment_number: str):
        self.appointment_number = appointment_number
        super().__init__(f"Appointment number {appointment_number} already exists")


class AppointmentRepository(Protocol):
    """Storage operations the booking service relies on.

    Writes join the current transaction; nothing is durable until ``commit``.
    """

    async def insert(self, values: dict[str, Any]) -> dict[str, Any]: ...

    async def find_by_id(
        self, appointment_id: UUID, for_update: bool = False
    ) -> dict[str, Any] | None: ...

    async def find_by_date_range(
        self,
        start: datetime,
        end: datetime,
        exclude_statuses: Iterable[AppointmentStatus] = (),
    ) -> list[dict[str, Any]]: ...

    async def update(self, appointment_id: UUID, values: dict[str, Any]) -> dict[str, Any]: ...

    async def list_appointments(
        self,
        filters: AppointmentFilters,
        requester_id: UUID | None = None,
    ) -> tuple[int, list[dict[str, Any]]]: ...

    async def lock_calendar_day(self, day: date) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


def calendar_lock_key(day: date) -> tuple[int, int]:
    """Advisory lock key pair serializing bookings for one calendar day."""
    return CALENDAR_LOCK_NAMESPACE, day.toordinal()


class SqlAppointmentRepository:
    """AppointmentRepository backed by PostgreSQL."""

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session."""
        self.db = db

    async def _execute(self, stmt: Any, operation: str) -> Any:
        try:
            return await self.db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("appointment_storage_failed", operation=operation, error=str(e))
            raise PersistenceFailureException(f"Failed to {operation}") from e

    async def insert(self, values: dict[str, Any]) -> dict[str, Any]:
        """
        Insert an appointment inside a savepoint.

        Raises:
            DuplicateReferenceError: If the appointment number is taken
            PersistenceFailureException: On any other storage error
        """
        stmt = insert(appointments).values(**values).returning(appointments)
        try:
            async with self.db.begin_nested():
                result = await self.db.execute(stmt)
                row = result.fetchone()
        except IntegrityError as e:
            if APPOINTMENT_NUMBER_CONSTRAINT in str(e.orig):
                raise DuplicateReferenceError(values["appointment_number"]) from e
            logger.error("appointment_insert_failed", error=str(e))
            raise PersistenceFailureException("Failed to store appointment") from e
        except SQLAlchemyError as e:
            logger.error("appointment_insert_failed", error=str(e))
            raise PersistenceFailureException("Failed to store appointment") from e

        return dict(row._mapping)

    async def find_by_id(
        self, appointment_id: UUID, for_update: bool = False
    ) -> dict[str, Any] | None:
        """Load one appointment, row-locked until commit when ``for_update`` is set."""
        stmt = select(appointments).where(appointments.c.id == appointment_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._execute(stmt, "load appointment")
        row = result.fetchone()
        return dict(row._mapping) if row else None

    async def find_by_date_range(
        self,
        start: datetime,
        end: datetime,
        exclude_statuses: Iterable[AppointmentStatus] = (),
    ) -> list[dict[str, Any]]:
        """
        Load appointments starting in ``[start, end)``.

        Args:
            start: Inclusive lower bound on ``scheduled_date``
            end: Exclusive upper bound on ``scheduled_date``
            exclude_statuses: Statuses to leave out

        Returns:
            Matching appointments ordered by start
        """
        conditions = [
            appointments.c.scheduled_date >= start,
            appointments.c.scheduled_date < end,
        ]
        excluded = [status.value for status in exclude_statuses]
        if excluded:
            conditions.append(appointments.c.status.notin_(excluded))

        stmt = (
            select(appointments)
            .where(and_(*conditions))
            .order_by(appointments.c.scheduled_date.asc())
        )
        result = await self._execute(stmt, "load appointments for date range")
        return [dict(row._mapping) for row in result.fetchall()]

    async def update(self, appointment_id: UUID, values: dict[str, Any]) -> dict[str, Any]:
        stmt = (
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(**values)
            .returning(appointments)
        )
        result = await self._execute(stmt, "update appointment")
        row = result.fetchone()
        if row is None:
            raise PersistenceFailureException("Appointment disappeared during update")
        return dict(row._mapping)

    async def list_appointments(
        self,
        filters: AppointmentFilters,
        requester_id: UUID | None = None,
    ) -> tuple[int, list[dict[str, Any]]]:
        """
        List appointments with filtering and pagination.

        Args:
            filters: Filter and pagination parameters
            requester_id: Restrict to one requester when given

        Returns:
            Total count and the requested page, ordered by start
        """
        conditions = []

        if requester_id is not None:
            conditions.append(appointments.c.requester_id == requester_id)

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.appointment_type:
            conditions.append(appointments.c.appointment_type == filters.appointment_type.value)

        if filters.from_date:
            conditions.append(appointments.c.scheduled_date >= filters.from_date)

        if filters.to_date:
            conditions.append(appointments.c.scheduled_date < filters.to_date)

        where = and_(true(), *conditions)

        count_stmt = select(func.count()).select_from(appointments).where(where)
        total_result = await self._execute(count_stmt, "count appointments")
        total = total_result.scalar() or 0

        offset = (filters.page - 1) * filters.page_size
        stmt = (
            select(appointments)
            .where(where)
            .order_by(appointments.c.scheduled_date.asc())
            .limit(filters.page_size)
            .offset(offset)
        )
        result = await self._execute(stmt, "list appointments")

        return total, [dict(row._mapping) for row in result.fetchall()]

    async def lock_calendar_day(self, day: date) -> None:
        """Take the transaction-scoped advisory lock for ``day``."""
        namespace, key = calendar_lock_key(day)
        await self._execute(
            select(func.pg_advisory_xact_lock(namespace, key)),
            "lock calendar day",
        )

    async def commit(self) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error("appointment_commit_failed", error=str(e))
            raise PersistenceFailureException("Failed to commit appointment changes") from e

    async def rollback(self) -> None:
        await self.db.rollback()
