"""Database models."""

from embassy.models.appointments import appointments
from embassy.models.notifications import notifications

__all__ = [
    "appointments",
    "notifications",
]
