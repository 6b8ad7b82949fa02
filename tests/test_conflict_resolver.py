"""Tests for conflict detection and slot suggestions."""

from datetime import UTC, datetime
from uuid import uuid4

import pytest
from pydantic import ValidationError

from app.core.exceptions import ConflictDetected, RepositoryUnavailable, ValidationException
from app.schemas.appointments import AppointmentStatus, BookingPolicy
from app.services.conflict_resolver import ConflictResolver
from conftest import MONDAY_10AM


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=UTC)


@pytest.mark.asyncio
async def test_free_slot_has_no_conflict(resolver, doctor_id) -> None:
    """Test an empty calendar reports no conflict."""
    report = await resolver.check_conflict(doctor_id, MONDAY_10AM)

    assert report.has_conflict is False
    assert report.conflicting_appointments == []
    report.raise_for_conflict()


@pytest.mark.asyncio
async def test_booked_slot_conflicts_with_suggestions(resolver, repository, doctor_id) -> None:
    """Test a booked slot yields the next three half-hour slots."""
    booked = repository.add(doctor_id=doctor_id, patient_id=uuid4(), scheduled_at=MONDAY_10AM)

    report = await resolver.check_conflict(doctor_id, MONDAY_10AM)

    assert report.has_conflict is True
    assert [a.id for a in report.conflicting_appointments] == [booked.id]
    assert report.suggested_times == [
        _utc(2024, 3, 4, 10, 30),
        _utc(2024, 3, 4, 11, 0),
        _utc(2024, 3, 4, 11, 30),
    ]

    with pytest.raises(ConflictDetected) as exc_info:
        report.raise_for_conflict()
    assert exc_info.value.status_code == 409
    assert exc_info.value.suggested_times == report.suggested_times
    assert exc_info.value.to_dict()["suggested_times"][0] == "2024-03-04T10:30:00+00:00"


@pytest.mark.asyncio
async def test_other_doctor_does_not_conflict(resolver, repository, doctor_id) -> None:
    """Test appointments of another doctor are ignored."""
    repository.add(doctor_id=uuid4(), patient_id=uuid4(), scheduled_at=MONDAY_10AM)

    report = await resolver.check_conflict(doctor_id, MONDAY_10AM)

    assert report.has_conflict is False


@pytest.mark.asyncio
async def test_cancelled_appointment_frees_slot(resolver, repository, doctor_id) -> None:
    """Test cancelled appointments do not occupy their slot."""
    repository.add(
        doctor_id=doctor_id,
        patient_id=uuid4(),
        scheduled_at=MONDAY_10AM,
        status=AppointmentStatus.CANCELLED,
    )

    report = await resolver.check_conflict(doctor_id, MONDAY_10AM)

    assert report.has_conflict is False


@pytest.mark.asyncio
async def test_excluded_appointment_is_not_a_conflict(resolver, repository, doctor_id) -> None:
    """Test an appointment does not conflict with itself."""
    own = repository.add(doctor_id=doctor_id, patient_id=uuid4(), scheduled_at=MONDAY_10AM)

    report = await resolver.check_conflict(doctor_id, MONDAY_10AM, exclude_appointment_id=own.id)

    assert report.has_conflict is False


@pytest.mark.asyncio
async def test_suggestions_skip_booked_slots(resolver, repository, doctor_id) -> None:
    """Test booked candidates are left out of the suggestions."""
    for hour, minute in ((10, 0), (10, 30), (11, 30)):
        repository.add(
            doctor_id=doctor_id,
            patient_id=uuid4(),
            scheduled_at=_utc(2024, 3, 4, hour, minute),
        )

    suggestions = await resolver.suggest_times(doctor_id, MONDAY_10AM)

    assert suggestions == [
        _utc(2024, 3, 4, 11, 0),
        _utc(2024, 3, 4, 12, 0),
        _utc(2024, 3, 4, 12, 30),
    ]


@pytest.mark.asyncio
async def test_end_of_day_jumps_to_next_morning(resolver, doctor_id) -> None:
    """Test a late request continues at 08:00 the next day."""
    suggestions = await resolver.suggest_times(doctor_id, _utc(2024, 3, 4, 17, 30))

    assert suggestions == [
        _utc(2024, 3, 5, 8, 0),
        _utc(2024, 3, 5, 8, 30),
        _utc(2024, 3, 5, 9, 0),
    ]


@pytest.mark.asyncio
async def test_closing_time_is_outside_business_hours(resolver, doctor_id) -> None:
    """Test 18:00 itself is never suggested."""
    suggestions = await resolver.suggest_times(doctor_id, _utc(2024, 3, 4, 17, 0))

    assert suggestions[0] == _utc(2024, 3, 4, 17, 30)
    assert suggestions[1] == _utc(2024, 3, 5, 8, 0)


@pytest.mark.asyncio
async def test_early_request_moves_to_opening(resolver, doctor_id) -> None:
    """Test a pre-opening request starts at 08:00 the same day."""
    suggestions = await resolver.suggest_times(doctor_id, _utc(2024, 3, 5, 6, 0))

    assert suggestions[0] == _utc(2024, 3, 5, 8, 0)


@pytest.mark.asyncio
async def test_friday_evening_skips_weekend(resolver, doctor_id) -> None:
    """Test suggestions never land on Saturday or Sunday."""
    suggestions = await resolver.suggest_times(doctor_id, _utc(2024, 3, 8, 17, 30))

    assert suggestions == [
        _utc(2024, 3, 11, 8, 0),
        _utc(2024, 3, 11, 8, 30),
        _utc(2024, 3, 11, 9, 0),
    ]


@pytest.mark.asyncio
async def test_suggestions_are_deterministic(resolver, repository, doctor_id) -> None:
    """Test the same calendar always gives the same suggestions."""
    repository.add(doctor_id=doctor_id, patient_id=uuid4(), scheduled_at=_utc(2024, 3, 4, 11, 0))

    first = await resolver.suggest_times(doctor_id, MONDAY_10AM)
    second = await resolver.suggest_times(doctor_id, MONDAY_10AM)

    assert first == second


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "requested_at",
    [
        _utc(2024, 3, 4, 10, 0),
        _utc(2024, 3, 4, 17, 45),
        _utc(2024, 3, 6, 3, 15),
        _utc(2024, 3, 9, 12, 0),
        _utc(2024, 3, 10, 23, 30),
    ],
)
async def test_suggestions_fall_in_business_hours(resolver, doctor_id, requested_at) -> None:
    """Test every suggestion is a weekday time between 08:00 and 18:00."""
    suggestions = await resolver.suggest_times(doctor_id, requested_at)

    assert suggestions
    assert suggestions == sorted(suggestions)
    for suggestion in suggestions:
        assert suggestion > requested_at
        assert resolver.is_business_time(suggestion)


@pytest.mark.asyncio
async def test_search_is_bounded(resolver, repository, doctor_id) -> None:
    """Test a fully booked horizon returns no suggestions after 16 checks."""
    slot = MONDAY_10AM
    for _ in range(16):
        slot = resolver.next_candidate(slot)
        repository.add(doctor_id=doctor_id, patient_id=uuid4(), scheduled_at=slot)

    repository.find_calls = 0
    suggestions = await resolver.suggest_times(doctor_id, MONDAY_10AM)

    assert suggestions == []
    assert repository.find_calls == 16


@pytest.mark.asyncio
async def test_policy_controls_interval_and_count(repository, doctor_id) -> None:
    """Test custom slot interval and suggestion count."""
    resolver = ConflictResolver(
        repository, BookingPolicy(slot_interval_minutes=15, max_suggestions=2)
    )

    suggestions = await resolver.suggest_times(doctor_id, MONDAY_10AM)

    assert suggestions == [_utc(2024, 3, 4, 10, 15), _utc(2024, 3, 4, 10, 30)]


@pytest.mark.asyncio
async def test_business_timezone_is_respected(repository, doctor_id) -> None:
    """Test business hours are evaluated in the configured zone."""
    resolver = ConflictResolver(repository, BookingPolicy(business_timezone="America/New_York"))

    # 22:30 UTC is 17:30 in New York (EST)
    suggestions = await resolver.suggest_times(doctor_id, _utc(2024, 3, 4, 22, 30))

    # 08:00 EST next day
    assert suggestions[0] == _utc(2024, 3, 5, 13, 0)


@pytest.mark.asyncio
async def test_naive_datetime_is_rejected(resolver, doctor_id) -> None:
    """Test naive datetimes raise a validation error."""
    with pytest.raises(ValidationException):
        await resolver.check_conflict(doctor_id, datetime(2024, 3, 4, 10, 0))


@pytest.mark.asyncio
async def test_repository_failure_propagates(broken_repository, doctor_id) -> None:
    """Test storage errors are never reported as a free slot."""
    resolver = ConflictResolver(broken_repository)

    with pytest.raises(RepositoryUnavailable):
        await resolver.check_conflict(doctor_id, MONDAY_10AM)


@pytest.mark.parametrize("start_hour, end_hour", [(18, 8), (9, 9)])
def test_policy_rejects_inverted_business_hours(start_hour, end_hour) -> None:
    """Test the business day must start before it ends."""
    with pytest.raises(ValidationError):
        BookingPolicy(business_day_start_hour=start_hour, business_day_end_hour=end_hour)


def test_policy_accepts_full_day() -> None:
    """Test a round-the-clock business day is allowed."""
    policy = BookingPolicy(business_day_start_hour=0, business_day_end_hour=24)

    assert policy.business_day_end_hour == 24
