"""Appointment endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from embassy.dependencies import AppointmentServiceDep, BookingRateLimit, CurrentActor
from embassy.schemas.appointments import (
    AppointmentCancel,
    AppointmentComplete,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    AppointmentType,
    AppointmentUpdate,
    AvailableSlotsResponse,
)

router = APIRouter()


@router.post(
    "/schedule",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[BookingRateLimit],
    summary="Book an appointment",
)
async def schedule_appointment(
    data: AppointmentCreate,
    actor: CurrentActor,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    """
    Book an appointment for the authenticated actor.

    Args:
        data: Booking request
        actor: Authenticated actor
        service: Appointment service

    Returns:
        Created appointment
    """
    return await service.book(actor, data)


@router.get(
    "/available-slots",
    response_model=AvailableSlotsResponse,
    status_code=status.HTTP_200_OK,
    summary="List free slots for a day",
)
async def list_available_slots(
    actor: CurrentActor,
    service: AppointmentServiceDep,
    day: date = Query(..., alias="date"),
    duration: int | None = Query(None, ge=1),
) -> AvailableSlotsResponse:
    """
    List the free slots of a day within office hours.

    Args:
        actor: Authenticated actor
        service: Appointment service
        day: Calendar day in the office timezone
        duration: Slot length in minutes, defaults to the configured length

    Returns:
        Free slots in start order
    """
    return await service.list_available_slots(day, duration)


@router.get(
    "/my-appointments",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List own appointments",
)
async def list_my_appointments(
    actor: CurrentActor,
    service: AppointmentServiceDep,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    appointment_type: AppointmentType | None = Query(None, alias="appointmentType"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
) -> AppointmentListResponse:
    """List the authenticated actor's appointments, earliest first."""
    filters = AppointmentFilters(
        status=status_filter,
        appointment_type=appointment_type,
        page=page,
        page_size=page_size,
    )
    return await service.list_my_appointments(actor, filters)


@router.get(
    "/admin/all",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List all appointments",
)
async def list_all_appointments(
    actor: CurrentActor,
    service: AppointmentServiceDep,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    appointment_type: AppointmentType | None = Query(None, alias="appointmentType"),
    on_date: date | None = Query(None, alias="date"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List every appointment on the office calendar.

    Args:
        actor: Authenticated staff member or admin
        service: Appointment service
        status_filter: Filter by status
        appointment_type: Filter by appointment type
        on_date: Only appointments on this office-local day
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of appointments
    """
    filters = AppointmentFilters(
        status=status_filter,
        appointment_type=appointment_type,
        on_date=on_date,
        page=page,
        page_size=page_size,
    )
    return await service.list_all_appointments(actor, filters)


@router.put(
    "/admin/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Change appointment status",
)
async def change_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    actor: CurrentActor,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    """Move an appointment to a new status through the lifecycle rules."""
    return await service.change_status(actor, appointment_id, data)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    actor: CurrentActor,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    """
    Get a specific appointment by ID.

    Raises:
        NotFoundException: If appointment not found
        ForbiddenException: If the actor may not see it
    """
    return await service.get_appointment(actor, appointment_id)


@router.put(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Update appointment",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    actor: CurrentActor,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    """Change the time, notes or special requirements of a scheduled appointment."""
    return await service.update_appointment(actor, appointment_id, data)


@router.post(
    "/{appointment_id}/confirm",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Confirm appointment",
)
async def confirm_appointment(
    appointment_id: UUID,
    actor: CurrentActor,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    return await service.confirm(actor, appointment_id)


@router.post(
    "/{appointment_id}/start",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Start appointment",
)
async def start_appointment(
    appointment_id: UUID,
    actor: CurrentActor,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    return await service.start(actor, appointment_id)


@router.post(
    "/{appointment_id}/complete",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Complete appointment",
)
async def complete_appointment(
    appointment_id: UUID,
    actor: CurrentActor,
    service: AppointmentServiceDep,
    data: AppointmentComplete | None = None,
) -> AppointmentResponse:
    return await service.complete(actor, appointment_id, data or AppointmentComplete())


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    actor: CurrentActor,
    service: AppointmentServiceDep,
    data: AppointmentCancel | None = None,
) -> AppointmentResponse:
    """Cancel an appointment; the requester or office staff may do this."""
    return await service.cancel(actor, appointment_id, data.reason if data else None)


@router.post(
    "/{appointment_id}/no-show",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark appointment as no-show",
)
async def mark_no_show(
    appointment_id: UUID,
    actor: CurrentActor,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    return await service.mark_no_show(actor, appointment_id)
