"""Slot conflict detection and alternative time suggestions."""

from datetime import UTC, date, datetime, timedelta
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog

from app.core.clock import ensure_aware
from app.repositories.base import AppointmentRepository
from app.schemas.appointments import BookingPolicy, ConflictReport

logger = structlog.get_logger(__name__)

SATURDAY = 5
SUNDAY = 6


class ConflictResolver:
    """
    Detects double bookings and proposes free slots.

    A slot is an exact timestamp: two appointments conflict only when their
    start times are equal. Suggestions walk forward from the requested time in
    fixed steps, skipping nights and weekends, and stop after a bounded number
    of steps so a fully booked calendar cannot cause an unbounded search.
    """

    def __init__(
        self,
        repository: AppointmentRepository,
        policy: BookingPolicy | None = None,
    ):
        """Initialize resolver with a repository and booking policy."""
        self.repository = repository
        self.policy = policy or BookingPolicy()
        self.tz = ZoneInfo(self.policy.business_timezone)

    async def check_conflict(
        self,
        doctor_id: UUID,
        requested_at: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> ConflictReport:
        """
        Check whether a doctor's slot is free.

        Args:
            doctor_id: Doctor to check
            requested_at: Requested slot start (timezone-aware)
            exclude_appointment_id: Appointment to ignore, for updates of itself

        Returns:
            Report with colliding appointments and suggested alternatives

        Raises:
            ValidationException: If requested_at is naive
            RepositoryUnavailable: If the repository cannot be queried
        """
        requested_at = ensure_aware(requested_at, "requested_at")

        conflicts = await self.repository.find_appointments_at(
            doctor_id, requested_at, exclude_appointment_id
        )
        suggestions = await self.suggest_times(doctor_id, requested_at, exclude_appointment_id)

        if conflicts:
            logger.info(
                "appointment_conflict_detected",
                doctor_id=str(doctor_id),
                requested_at=requested_at.isoformat(),
                conflicts=[str(a.id) for a in conflicts],
                suggestions=[t.isoformat() for t in suggestions],
            )

        return ConflictReport(
            doctor_id=doctor_id,
            requested_at=requested_at,
            has_conflict=bool(conflicts),
            conflicting_appointments=conflicts,
            suggested_times=suggestions,
        )

    async def suggest_times(
        self,
        doctor_id: UUID,
        requested_at: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> list[datetime]:
        """
        Find the next free slots after ``requested_at``.

        Args:
            doctor_id: Doctor to check
            requested_at: Starting point; never itself suggested
            exclude_appointment_id: Appointment whose own slot counts as free

        Returns:
            Up to ``max_suggestions`` free UTC times in ascending order
        """
        suggestions: list[datetime] = []
        candidate = ensure_aware(requested_at, "requested_at").astimezone(self.tz)

        for _ in range(self.policy.suggestion_search_iterations):
            if len(suggestions) >= self.policy.max_suggestions:
                break

            candidate = self.next_candidate(candidate)
            candidate_utc = candidate.astimezone(UTC)

            taken = await self.repository.find_appointments_at(
                doctor_id, candidate_utc, exclude_appointment_id
            )
            if not taken:
                suggestions.append(candidate_utc)

        return suggestions

    def next_candidate(self, current: datetime) -> datetime:
        """Step one interval forward, then move into business hours on a weekday."""
        start_hour = self.policy.business_day_start_hour
        candidate = current + timedelta(minutes=self.policy.slot_interval_minutes)

        if candidate.hour >= self.policy.business_day_end_hour:
            candidate = self._at_hour(candidate.date() + timedelta(days=1), start_hour)
        elif candidate.hour < start_hour:
            candidate = self._at_hour(candidate.date(), start_hour)

        if candidate.weekday() == SATURDAY:
            candidate = self._at_hour(candidate.date() + timedelta(days=2), start_hour)
        elif candidate.weekday() == SUNDAY:
            candidate = self._at_hour(candidate.date() + timedelta(days=1), start_hour)

        return candidate

    def is_business_time(self, value: datetime) -> bool:
        """Whether ``value`` falls on a weekday inside business hours."""
        local = ensure_aware(value).astimezone(self.tz)
        return (
            local.weekday() < SATURDAY
            and self.policy.business_day_start_hour
            <= local.hour
            < self.policy.business_day_end_hour
        )

    def _at_hour(self, day: date, hour: int) -> datetime:
        return datetime(day.year, day.month, day.day, hour, tzinfo=self.tz)
