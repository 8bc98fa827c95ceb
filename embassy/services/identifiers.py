"""Human-readable appointment references.

References look like ``VIS-202611-0427``: a prefix for the appointment type,
the booking year and month, and a four digit disambiguator. Generators do not
check uniqueness; the unique constraint on ``appointment_number`` does, and
the booking service asks for a fresh reference when an insert collides.
"""

import random
from datetime import datetime
from typing import Protocol

from embassy.schemas.appointments import AppointmentType

TYPE_PREFIXES: dict[AppointmentType, str] = {
    AppointmentType.VISA_INTERVIEW: "VIS",
    AppointmentType.DOCUMENT_SUBMISSION: "DOC",
    AppointmentType.PASSPORT_COLLECTION: "PPT",
    AppointmentType.CONSULTATION: "CON",
    AppointmentType.EMERGENCY: "EMG",
    AppointmentType.OTHER: "APT",
}


def format_reference(appointment_type: AppointmentType, when: datetime, number: int) -> str:
    """Render a reference from its parts."""
    return f"{TYPE_PREFIXES[appointment_type]}-{when:%Y%m}-{number % 10000:04d}"


class IdentifierGenerator(Protocol):
    """Strategy producing appointment references."""

    def generate(self, appointment_type: AppointmentType, now: datetime) -> str: ...


class RandomReferenceGenerator:
    """Default generator with a random disambiguator."""

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.SystemRandom()

    def generate(self, appointment_type: AppointmentType, now: datetime) -> str:
        return format_reference(appointment_type, now, self._rng.randrange(10000))
