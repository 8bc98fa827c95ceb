"""FastAPI dependencies."""

from typing import Annotated
from uuid import UUID

import redis
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from embassy.config import settings
from embassy.core.exceptions import RateLimitException, UnauthorizedException
from embassy.core.permissions import Actor, Role
from embassy.core.redis_client import RateLimiter, get_redis_client
from embassy.core.security import decode_access_token
from embassy.database import get_db
from embassy.repositories.appointments import SqlAppointmentRepository
from embassy.services.appointment_service import AppointmentService
from embassy.services.notification_service import NotificationService
from embassy.services.scheduling import office_timezone

# Security
security = HTTPBearer()

DatabaseSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> Actor:
    """
    Build the acting identity from the bearer token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Actor with id and role taken from the ``sub`` and ``role`` claims

    Raises:
        UnauthorizedException: If token is invalid, expired or lacks a known role
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise UnauthorizedException("Could not validate credentials")

    actor_id = payload.get("sub")
    if actor_id is None or not isinstance(actor_id, str):
        raise UnauthorizedException("Could not validate credentials")

    try:
        return Actor(actor_id=UUID(actor_id), role=Role(payload.get("role", Role.CITIZEN.value)))
    except ValueError:
        raise UnauthorizedException("Invalid actor claims")


def get_appointment_service(db: DatabaseSession) -> AppointmentService:
    """Assemble the appointment service on the request's session."""
    return AppointmentService(
        SqlAppointmentRepository(db),
        NotificationService(db, tz=office_timezone(settings.office_timezone)),
        settings=settings,
    )


CurrentActor = Annotated[Actor, Depends(get_current_actor)]


async def enforce_booking_rate_limit(
    actor: CurrentActor,
    redis_client: Annotated[redis.Redis, Depends(get_redis_client)],
) -> None:
    """
    Reject actors who submit too many booking requests.

    Raises:
        RateLimitException: If the per-minute booking limit is exceeded
    """
    limiter = RateLimiter(redis_client)
    key = f"rate:booking:{actor.actor_id}"
    if not limiter.check_rate_limit(key, settings.booking_rate_limit_per_minute):
        raise RateLimitException("Too many booking requests, try again in a minute")


# Type aliases for dependency injection
AppointmentServiceDep = Annotated[AppointmentService, Depends(get_appointment_service)]
BookingRateLimit = Depends(enforce_booking_rate_limit)
