"""Persisted appointments, overlap queries and the atomic booking guard."""

import logging
from contextlib import contextmanager
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.core.errors import AppointmentNotFound, SchedulingConflict, ValidationError
from backend.models.appointment import (
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_SCHEDULED,
    Appointment,
    SchedulingLock,
)
from backend.services.lock_registry import ManagerLockRegistry

logger = logging.getLogger(__name__)


def find_overlapping(
    db: Session,
    manager_id: str,
    candidate_start: datetime,
    duration_minutes: int,
) -> list[Appointment]:
    candidate_end = candidate_start + timedelta(minutes=duration_minutes)

    return db.query(Appointment).filter(
        Appointment.manager_id == manager_id,
        Appointment.status != STATUS_CANCELLED,
        Appointment.scheduled_time < candidate_end,
        Appointment.end_time > candidate_start,
    ).order_by(Appointment.scheduled_time.asc()).all()


def is_bookable(db: Session, manager_id: str, candidate_start: datetime, duration_minutes: int) -> bool:
    """Advisory check; only authoritative inside ``booking_guard``."""
    return not find_overlapping(db, manager_id, candidate_start, duration_minutes)


def _lock_manager_row(db: Session, manager_id: str) -> None:
    if db.get(SchedulingLock, manager_id) is None:
        db.add(SchedulingLock(manager_id=manager_id))
        try:
            db.commit()
        except IntegrityError:
            db.rollback()

    # Reads below must see whatever the previous lock holder committed.
    db.expire_all()
    db.query(SchedulingLock).filter(
        SchedulingLock.manager_id == manager_id,
    ).with_for_update().one()


@contextmanager
def booking_guard(db: Session, locks: ManagerLockRegistry, manager_id: str):
    """Serialize bookings for one manager across threads and database sessions.

    The caller checks, writes and commits inside the block. Anything left
    uncommitted on exit is rolled back.
    """
    with locks.lock_for(manager_id):
        _lock_manager_row(db, manager_id)
        try:
            yield
        finally:
            if db.in_transaction():
                db.rollback()


def insert_appointment(
    db: Session,
    *,
    manager_id: str,
    inquiry_id: str,
    kind: str,
    scheduled_time: datetime,
    duration_minutes: int,
    property_address: str | None = None,
) -> Appointment:
    """Re-check overlap and stage the appointment; must run inside ``booking_guard``."""
    overlapping = find_overlapping(db, manager_id, scheduled_time, duration_minutes)
    if overlapping:
        logger.warning(
            'Scheduling conflict for manager %s at %s (%s existing)',
            manager_id, scheduled_time.isoformat(), len(overlapping),
        )
        raise SchedulingConflict([appointment.id for appointment in overlapping])

    appointment = Appointment(
        manager_id=manager_id,
        inquiry_id=inquiry_id,
        kind=kind,
        scheduled_time=scheduled_time,
        end_time=scheduled_time + timedelta(minutes=duration_minutes),
        duration_minutes=duration_minutes,
        property_address=property_address,
        status=STATUS_SCHEDULED,
    )
    db.add(appointment)
    db.flush()
    return appointment


def schedule_appointment(
    db: Session,
    locks: ManagerLockRegistry,
    *,
    manager_id: str,
    inquiry_id: str,
    kind: str,
    scheduled_time: datetime,
    duration_minutes: int,
    now: datetime,
    property_address: str | None = None,
) -> Appointment:
    if not inquiry_id:
        raise ValidationError('Inquiry ID is required.')
    if duration_minutes is None or duration_minutes <= 0:
        raise ValidationError('Appointment duration must be positive.')
    if scheduled_time < now:
        raise ValidationError('Cannot schedule appointments in the past.')

    with booking_guard(db, locks, manager_id):
        appointment = insert_appointment(
            db,
            manager_id=manager_id,
            inquiry_id=inquiry_id,
            kind=kind,
            scheduled_time=scheduled_time,
            duration_minutes=duration_minutes,
            property_address=property_address,
        )
        db.commit()

    db.refresh(appointment)
    return appointment


def get_appointment(db: Session, manager_id: str, appointment_id: str) -> Appointment:
    appointment = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.manager_id == manager_id,
    ).first()
    if appointment is None:
        raise AppointmentNotFound()
    return appointment


def _transition(db: Session, appointment: Appointment, status: str, now: datetime) -> Appointment:
    if appointment.status != STATUS_SCHEDULED:
        raise ValidationError(f'Only scheduled appointments can be marked {status}.')

    appointment.status = status
    if status == STATUS_CANCELLED:
        appointment.cancelled_at = now
    db.commit()
    db.refresh(appointment)
    logger.info('Appointment %s marked %s', appointment.id, status)
    return appointment


def cancel_appointment(db: Session, manager_id: str, appointment_id: str, now: datetime) -> Appointment:
    """Status change only; consumed booking tokens stay consumed."""
    return _transition(db, get_appointment(db, manager_id, appointment_id), STATUS_CANCELLED, now)


def complete_appointment(db: Session, manager_id: str, appointment_id: str, now: datetime) -> Appointment:
    return _transition(db, get_appointment(db, manager_id, appointment_id), STATUS_COMPLETED, now)


def list_appointments(
    db: Session,
    manager_id: str,
    status: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Appointment]:
    query = db.query(Appointment).filter(Appointment.manager_id == manager_id)
    if status:
        query = query.filter(Appointment.status == status)
    if start is not None:
        query = query.filter(Appointment.scheduled_time >= start)
    if end is not None:
        query = query.filter(Appointment.scheduled_time <= end)
    return query.order_by(Appointment.scheduled_time.asc()).all()
