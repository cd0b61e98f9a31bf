from datetime import datetime

import pytest

from backend.core.errors import AppointmentNotFound, SchedulingConflict, ValidationError
from backend.models.appointment import STATUS_CANCELLED, STATUS_COMPLETED, Appointment
from backend.services import appointment_ledger
from backend.services.lock_registry import ManagerLockRegistry

NOW = datetime(2026, 1, 5, 8, 0)


def book(db, locks, start, duration=30, manager_id='manager-1', kind='tour'):
    return appointment_ledger.schedule_appointment(
        db,
        locks,
        manager_id=manager_id,
        inquiry_id='inquiry-1',
        kind=kind,
        scheduled_time=start,
        duration_minutes=duration,
        now=NOW,
    )


@pytest.fixture
def locks() -> ManagerLockRegistry:
    return ManagerLockRegistry()


def test_find_overlapping_uses_half_open_intervals(db, locks) -> None:
    book(db, locks, datetime(2026, 1, 5, 10, 0), 30)

    assert appointment_ledger.find_overlapping(db, 'manager-1', datetime(2026, 1, 5, 9, 30), 30) == []
    assert appointment_ledger.find_overlapping(db, 'manager-1', datetime(2026, 1, 5, 10, 30), 30) == []
    assert len(appointment_ledger.find_overlapping(db, 'manager-1', datetime(2026, 1, 5, 10, 15), 30)) == 1
    assert len(appointment_ledger.find_overlapping(db, 'manager-1', datetime(2026, 1, 5, 9, 0), 180)) == 1


def test_is_bookable_ignores_other_managers(db, locks) -> None:
    book(db, locks, datetime(2026, 1, 5, 10, 0), manager_id='manager-2')

    assert appointment_ledger.is_bookable(db, 'manager-1', datetime(2026, 1, 5, 10, 0), 30)
    assert not appointment_ledger.is_bookable(db, 'manager-2', datetime(2026, 1, 5, 10, 0), 30)


def test_schedule_appointment_rejects_overlap_across_kinds(db, locks) -> None:
    existing = book(db, locks, datetime(2026, 1, 5, 10, 0), 60, kind='video_call')

    with pytest.raises(SchedulingConflict) as exception_info:
        book(db, locks, datetime(2026, 1, 5, 10, 30), 30, kind='tour')

    assert exception_info.value.conflicting_ids == [existing.id]
    assert db.query(Appointment).count() == 1


@pytest.mark.parametrize(
    ('start', 'duration', 'message'),
    [
        (datetime(2026, 1, 5, 10, 0), 0, 'Appointment duration must be positive.'),
        (datetime(2026, 1, 5, 10, 0), -15, 'Appointment duration must be positive.'),
        (datetime(2026, 1, 5, 7, 0), 30, 'Cannot schedule appointments in the past.'),
    ],
)
def test_schedule_appointment_validates_input(db, locks, start, duration, message) -> None:
    with pytest.raises(ValidationError) as exception_info:
        book(db, locks, start, duration)

    assert exception_info.value.message == message


def test_cancelled_appointment_frees_its_interval(db, locks) -> None:
    appointment = book(db, locks, datetime(2026, 1, 5, 10, 0))

    cancelled = appointment_ledger.cancel_appointment(db, 'manager-1', appointment.id, NOW)

    assert cancelled.status == STATUS_CANCELLED
    assert cancelled.cancelled_at == NOW
    assert appointment_ledger.is_bookable(db, 'manager-1', datetime(2026, 1, 5, 10, 0), 30)
    assert db.query(Appointment).count() == 1


def test_completed_appointment_still_blocks_its_interval(db, locks) -> None:
    appointment = book(db, locks, datetime(2026, 1, 5, 10, 0))

    completed = appointment_ledger.complete_appointment(db, 'manager-1', appointment.id, NOW)

    assert completed.status == STATUS_COMPLETED
    assert not appointment_ledger.is_bookable(db, 'manager-1', datetime(2026, 1, 5, 10, 0), 30)


def test_only_scheduled_appointments_transition(db, locks) -> None:
    appointment = book(db, locks, datetime(2026, 1, 5, 10, 0))
    appointment_ledger.cancel_appointment(db, 'manager-1', appointment.id, NOW)

    with pytest.raises(ValidationError):
        appointment_ledger.complete_appointment(db, 'manager-1', appointment.id, NOW)


def test_cancel_requires_owning_manager(db, locks) -> None:
    appointment = book(db, locks, datetime(2026, 1, 5, 10, 0))

    with pytest.raises(AppointmentNotFound):
        appointment_ledger.cancel_appointment(db, 'manager-2', appointment.id, NOW)


def test_list_appointments_filters_and_orders(db, locks) -> None:
    late = book(db, locks, datetime(2026, 1, 6, 15, 0))
    early = book(db, locks, datetime(2026, 1, 5, 9, 0))
    cancelled = book(db, locks, datetime(2026, 1, 5, 11, 0))
    appointment_ledger.cancel_appointment(db, 'manager-1', cancelled.id, NOW)

    everything = appointment_ledger.list_appointments(db, 'manager-1')
    scheduled = appointment_ledger.list_appointments(db, 'manager-1', status='scheduled')
    first_day = appointment_ledger.list_appointments(
        db, 'manager-1', start=datetime(2026, 1, 5), end=datetime(2026, 1, 5, 23, 59),
    )

    assert [appointment.id for appointment in everything] == [early.id, cancelled.id, late.id]
    assert [appointment.id for appointment in scheduled] == [early.id, late.id]
    assert [appointment.id for appointment in first_day] == [early.id, cancelled.id]


def test_details_are_typed_per_kind(db, locks) -> None:
    tour = appointment_ledger.schedule_appointment(
        db,
        locks,
        manager_id='manager-1',
        inquiry_id='inquiry-1',
        kind='tour',
        scheduled_time=datetime(2026, 1, 5, 9, 0),
        duration_minutes=30,
        now=NOW,
        property_address='12 Elm St',
    )
    video = book(db, locks, datetime(2026, 1, 5, 10, 0), kind='video_call')

    assert tour.details.property_address == '12 Elm St'
    assert not hasattr(tour.details, 'meeting_link')
    assert video.details.meeting_link is None
