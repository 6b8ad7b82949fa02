from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.exceptions import RepositoryUnavailable, SchedulingFailure, SlotAlreadyBooked
from app.models import combined_metadata
from app.schemas.appointments import (
    Appointment,
    AppointmentDetails,
    AppointmentStatus,
    BookingPolicy,
    PatientContact,
)
from app.schemas.notifications import (
    ChannelSendResult,
    NotificationChannel,
    NotificationPolicy,
    NotificationRequest,
)
from app.services.conflict_resolver import ConflictResolver
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.reminder_scheduler import ReminderScheduler

# Friday before the Monday morning slot used across the tests
NOW = datetime(2024, 3, 1, 9, 0, tzinfo=UTC)
MONDAY_10AM = datetime(2024, 3, 4, 10, 0, tzinfo=UTC)


class InMemoryAppointmentRepository:
    """Appointment repository holding everything in dicts."""

    def __init__(self):
        self.appointments: dict[UUID, Appointment] = {}
        self.patients: dict[UUID, PatientContact] = {}
        self.doctor_names: dict[UUID, str] = {}
        self.fail_with: Exception | None = None
        self.find_calls = 0

    def _check_available(self):
        if self.fail_with is not None:
            raise self.fail_with

    def add_patient(self, **fields: Any) -> PatientContact:
        patient = PatientContact(id=fields.pop("id", uuid4()), **fields)
        self.patients[patient.id] = patient
        return patient

    def add(self, **fields: Any) -> Appointment:
        appointment = Appointment(**fields)
        self.appointments[appointment.id] = appointment
        return appointment

    async def find_appointments_at(self, doctor_id, at, exclude_appointment_id=None):
        self._check_available()
        self.find_calls += 1
        return [
            a
            for a in self.appointments.values()
            if a.doctor_id == doctor_id
            and a.scheduled_at == at
            and a.status is not AppointmentStatus.CANCELLED
            and a.id != exclude_appointment_id
        ]

    async def get_appointment(self, appointment_id):
        self._check_available()
        return self.appointments.get(appointment_id)

    async def get_appointment_details(self, appointment_id):
        self._check_available()
        appointment = self.appointments.get(appointment_id)
        if appointment is None:
            return None
        patient = self.patients.get(appointment.patient_id) or PatientContact(
            id=appointment.patient_id, name="Patient"
        )
        return AppointmentDetails(
            appointment=appointment,
            patient=patient,
            doctor_name=self.doctor_names.get(appointment.doctor_id),
        )

    async def save_appointment(self, appointment):
        self._check_available()
        if appointment.status is not AppointmentStatus.CANCELLED:
            for other in self.appointments.values():
                if (
                    other.id != appointment.id
                    and other.doctor_id == appointment.doctor_id
                    and other.scheduled_at == appointment.scheduled_at
                    and other.status is not AppointmentStatus.CANCELLED
                ):
                    raise SlotAlreadyBooked()
        stored = appointment.model_copy()
        self.appointments[stored.id] = stored
        return stored

    async def delete_appointment(self, appointment_id):
        self._check_available()
        return self.appointments.pop(appointment_id, None) is not None


class InMemoryJobScheduler:
    """Job scheduler recording pending jobs in a dict."""

    def __init__(self):
        self.jobs: dict[str, dict[str, Any]] = {}
        self.cancel_calls: list[str] = []
        self.fail_schedule = False
        self.fail_cancel = False

    async def schedule_at(self, function_name, run_at, **kwargs):
        if self.fail_schedule:
            raise SchedulingFailure("queue unavailable")
        job_id = uuid4().hex
        self.jobs[job_id] = {"function": function_name, "run_at": run_at, "kwargs": kwargs}
        return job_id

    async def cancel(self, job_id):
        self.cancel_calls.append(job_id)
        if self.fail_cancel:
            raise SchedulingFailure("queue unavailable")
        return self.jobs.pop(job_id, None) is not None


class FakeChannelSender:
    """Channel sender returning scripted results."""

    def __init__(self, channel: NotificationChannel, script: list[Any] | None = None):
        self.channel = channel
        self.script = list(script or [])
        self.calls: list[dict[str, Any]] = []

    def recipient_for(self, request: NotificationRequest):
        if self.channel is NotificationChannel.EMAIL:
            return request.recipient_email
        if self.channel is NotificationChannel.PUSH:
            return request.push_tokens or None
        return request.recipient_phone

    async def send(self, recipient, subject, body, html=None, data=None):
        self.calls.append({"recipient": recipient, "subject": subject, "body": body})
        outcome = self.script.pop(0) if self.script else ChannelSendResult.ok("msg-default")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock():
    """Fixed clock at Friday 2024-03-01T09:00Z."""
    return lambda: NOW


@pytest.fixture
def repository() -> InMemoryAppointmentRepository:
    """Empty in-memory appointment repository."""
    return InMemoryAppointmentRepository()


@pytest.fixture
def job_scheduler() -> InMemoryJobScheduler:
    """Empty in-memory job scheduler."""
    return InMemoryJobScheduler()


@pytest.fixture
def sleep() -> SleepRecorder:
    """Backoff sleep recorder."""
    return SleepRecorder()


@pytest.fixture
def email_sender() -> FakeChannelSender:
    """Email sender that succeeds unless scripted otherwise."""
    return FakeChannelSender(NotificationChannel.EMAIL)


@pytest.fixture
def dispatcher(email_sender, sleep) -> NotificationDispatcher:
    """Email-only dispatcher with default retry policy."""
    return NotificationDispatcher([email_sender], policy=NotificationPolicy(), sleep=sleep)


@pytest.fixture
def resolver(repository) -> ConflictResolver:
    """Conflict resolver with default business hours."""
    return ConflictResolver(repository, BookingPolicy())


@pytest.fixture
def reminder_scheduler(repository, job_scheduler, dispatcher, clock) -> ReminderScheduler:
    """Reminder scheduler on in-memory collaborators."""
    return ReminderScheduler(repository, job_scheduler, dispatcher, clock=clock)


@pytest.fixture
def patient(repository) -> PatientContact:
    """Patient with email and phone."""
    return repository.add_patient(
        name="Jane Smith",
        email="jane@example.com",
        phone="+15551234567",
    )


@pytest.fixture
def doctor_id(repository) -> UUID:
    """Doctor known to the repository."""
    doctor_id = uuid4()
    repository.doctor_names[doctor_id] = "Dr. John Doe"
    return doctor_id


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory on a fresh SQLite database."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    metadata = combined_metadata()

    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def broken_repository(repository) -> InMemoryAppointmentRepository:
    """Repository whose every call fails."""
    repository.fail_with = RepositoryUnavailable("database is down")
    return repository
