"""Storage contract the scheduling services depend on."""

from datetime import datetime
from typing import Protocol
from uuid import UUID

from app.schemas.appointments import Appointment, AppointmentDetails


class AppointmentRepository(Protocol):
    """
    Appointment storage.

    Implementations raise ``RepositoryUnavailable`` on data-access failures and
    ``SlotAlreadyBooked`` when a write violates the one-active-appointment-per-slot
    constraint.
    """

    async def find_appointments_at(
        self,
        doctor_id: UUID,
        at: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> list[Appointment]:
        """Non-cancelled appointments of ``doctor_id`` starting exactly at ``at``."""
        ...

    async def get_appointment(self, appointment_id: UUID) -> Appointment | None:
        """Load a single appointment."""
        ...

    async def get_appointment_details(self, appointment_id: UUID) -> AppointmentDetails | None:
        """Load an appointment with patient contact and doctor name."""
        ...

    async def save_appointment(self, appointment: Appointment) -> Appointment:
        """Insert or update an appointment and return the stored state."""
        ...

    async def delete_appointment(self, appointment_id: UUID) -> bool:
        """Delete an appointment; False if it did not exist."""
        ...
