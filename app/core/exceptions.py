"""Custom application exceptions."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from app.schemas.appointments import Appointment


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class ServiceUnavailableException(AppException):
    """A backing service (database, queue) could not be reached."""

    def __init__(self, message: str = "Service unavailable"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)


class ConflictDetected(ConflictException):
    """The requested slot is already booked for the doctor."""

    def __init__(
        self,
        conflicting_appointments: list[Appointment] | None = None,
        suggested_times: list[datetime] | None = None,
        message: str = "Appointment conflict detected",
    ):
        """Initialize with the colliding appointments and alternative slots."""
        super().__init__(message)
        self.conflicting_appointments = conflicting_appointments or []
        self.suggested_times = suggested_times or []

    def to_dict(self) -> dict[str, Any]:
        """Serialize the conflict for an API response body."""
        return {
            "message": self.message,
            "conflicts": [a.model_dump(mode="json") for a in self.conflicting_appointments],
            "suggested_times": [t.isoformat() for t in self.suggested_times],
        }


class SlotAlreadyBooked(ConflictException):
    """The storage layer rejected a write on the (doctor, slot) uniqueness constraint."""

    def __init__(self, message: str = "Slot already booked"):
        """Initialize with 409 status code."""
        super().__init__(message)


class RepositoryUnavailable(ServiceUnavailableException):
    """Appointment storage failed; never to be read as "no conflict"."""

    def __init__(self, message: str = "Appointment repository unavailable"):
        """Initialize with 503 status code."""
        super().__init__(message)


class SchedulingFailure(ServiceUnavailableException):
    """The job scheduler could not accept a reminder job."""

    def __init__(self, message: str = "Failed to schedule reminder job"):
        """Initialize with 503 status code."""
        super().__init__(message)


class ChannelUnsupported(BadRequestException):
    """No sender is registered for the requested notification channel."""

    def __init__(self, channel: str):
        """Initialize with the offending channel name."""
        super().__init__(f"Unsupported notification channel: {channel}")
        self.channel = channel


class DeliveryFailure(AppException):
    """A single delivery attempt failed at the provider."""

    def __init__(self, message: str = "Notification delivery failed"):
        """Initialize with 502 status code."""
        super().__init__(message, status_code=502)


class ReminderDeliveryFailed(DeliveryFailure):
    """All channels and retries were exhausted for a reminder."""

    def __init__(self, appointment_id: Any, error: str | None = None):
        """Initialize with the appointment whose reminder could not be sent."""
        super().__init__(f"Failed to send reminder for appointment {appointment_id}: {error}")
        self.appointment_id = appointment_id
        self.error = error
