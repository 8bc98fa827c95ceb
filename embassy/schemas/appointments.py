"""Appointment schemas for request/response validation."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class AppointmentType(str, Enum):
    """Appointment subject enumeration."""

    VISA_INTERVIEW = "visa_interview"
    DOCUMENT_SUBMISSION = "document_submission"
    PASSPORT_COLLECTION = "passport_collection"
    CONSULTATION = "consultation"
    EMERGENCY = "emergency"
    OTHER = "other"


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class AppointmentPriority(str, Enum):
    """Appointment priority enumeration."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


# Statuses that no longer hold their interval on the calendar
INACTIVE_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW})

TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
)


class AppointmentCreate(BaseModel):
    """Schema for booking a new appointment."""

    appointment_type: AppointmentType
    scheduled_date: datetime
    duration: int | None = Field(None, ge=1, description="Minutes")
    priority: AppointmentPriority = AppointmentPriority.NORMAL
    notes: str | None = Field(None, max_length=1000)
    special_requirements: str | None = Field(None, max_length=1000)
    documents_required: str | None = Field(None, max_length=1000)
    interpreter_required: bool = False
    interpreter_language: str | None = Field(None, max_length=64)
    accessibility_needs: str | None = Field(None, max_length=1000)

    @field_validator("interpreter_language")
    @classmethod
    def strip_language(cls, v: str | None) -> str | None:
        """Normalize blank language names to None."""
        if v is None:
            return None
        v = v.strip()
        return v or None


class AppointmentUpdate(BaseModel):
    """Schema for changing a scheduled appointment."""

    scheduled_date: datetime | None = None
    notes: str | None = Field(None, max_length=1000)
    special_requirements: str | None = Field(None, max_length=1000)


class AppointmentCancel(BaseModel):
    """Schema for cancelling an appointment."""

    reason: str | None = Field(None, max_length=500)


class AppointmentComplete(BaseModel):
    """Schema for completing an appointment."""

    outcome: str | None = Field(None, max_length=2000)
    follow_up_required: bool = False
    follow_up_date: datetime | None = None


class AppointmentStatusUpdate(BaseModel):
    """Schema for the office-side status change endpoint."""

    status: AppointmentStatus
    notes: str | None = Field(None, max_length=1000)
    reason: str | None = Field(None, max_length=500)


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    appointment_number: str
    requester_id: UUID
    assigned_staff_id: UUID | None = None
    appointment_type: AppointmentType
    scheduled_date: datetime
    duration: int
    status: AppointmentStatus
    priority: AppointmentPriority
    notes: str | None = None
    special_requirements: str | None = None
    documents_required: str | None = None
    interpreter_required: bool = False
    interpreter_language: str | None = None
    accessibility_needs: str | None = None
    reminder_sent: bool = False
    reminder_date: datetime | None = None
    confirmed_by: UUID | None = None
    confirmed_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    outcome: str | None = None
    follow_up_required: bool = False
    follow_up_date: datetime | None = None
    cancellation_reason: str | None = None
    cancelled_by: UUID | None = None
    cancelled_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    appointment_type: AppointmentType | None = None
    on_date: date | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class AvailableSlot(BaseModel):
    """A free interval on the office calendar."""

    start_time: datetime
    end_time: datetime
    duration: int


class AvailableSlotsResponse(BaseModel):
    """Schema for the available slots listing."""

    day: date
    duration: int
    available_slots: list[AvailableSlot]
