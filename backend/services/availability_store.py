"""Persisted weekly availability per (manager, appointment kind)."""

import logging
import re
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.core.errors import ValidationError
from backend.models.availability import (
    APPOINTMENT_KINDS,
    WEEKDAYS,
    AvailabilityWindow,
    BlackoutRange,
    TimeBlock,
    minute_of_day,
)

logger = logging.getLogger(__name__)

TIME_PATTERN = re.compile(r'([0-1]?[0-9]|2[0-3]):[0-5][0-9]')


def validate_appointment_kind(kind: str) -> str:
    normalized = (kind or '').strip().lower()
    if normalized not in APPOINTMENT_KINDS:
        raise ValidationError('Schedule type must be either "video_call" or "tour".')
    return normalized


def validate_weekly_blocks(weekly_blocks: dict[str, list[TimeBlock]]) -> dict[str, list[TimeBlock]]:
    normalized: dict[str, list[TimeBlock]] = {}

    for day, blocks in weekly_blocks.items():
        weekday = day.strip().lower()
        if weekday not in WEEKDAYS:
            raise ValidationError(f'Invalid day name: {day}')

        for block in blocks:
            if not block.start_time or not block.end_time:
                raise ValidationError(f'Time block missing startTime or endTime for {day}.')
            if not TIME_PATTERN.fullmatch(block.start_time) or not TIME_PATTERN.fullmatch(block.end_time):
                raise ValidationError(f'Invalid time format for {day}. Use HH:MM format.')
            if minute_of_day(block.start_time) >= minute_of_day(block.end_time):
                raise ValidationError(f'Start time must be before end time for {day}.')

        ordered = sorted(blocks, key=lambda block: block.start_minute)
        for previous, current in zip(ordered, ordered[1:]):
            if previous.end_minute > current.start_minute:
                raise ValidationError(f'Time blocks overlap for {day}.')

        normalized[weekday] = list(blocks)

    return normalized


def validate_blackout_ranges(blackout_ranges: list[BlackoutRange]) -> list[BlackoutRange]:
    for blackout in blackout_ranges:
        # datetime subclasses date but would serialize with a time part.
        if isinstance(blackout.start_date, datetime) or isinstance(blackout.end_date, datetime):
            raise ValidationError('Blocked date range must use calendar dates without a time.')
        if not isinstance(blackout.start_date, date) or not isinstance(blackout.end_date, date):
            raise ValidationError('Blocked date range missing startDate or endDate.')
        if blackout.start_date > blackout.end_date:
            raise ValidationError('Blocked date range startDate must be before or equal to endDate.')
    return list(blackout_ranges)


def _serialize_blocks(weekly_blocks: dict[str, list[TimeBlock]]) -> dict:
    return {
        weekday: [{'startTime': block.start_time, 'endTime': block.end_time} for block in blocks]
        for weekday, blocks in weekly_blocks.items()
    }


def _serialize_blackouts(blackout_ranges: list[BlackoutRange]) -> list:
    return [
        {'startDate': blackout.start_date.isoformat(), 'endDate': blackout.end_date.isoformat()}
        for blackout in blackout_ranges
    ]


def get_availability(db: Session, manager_id: str, kind: str) -> AvailabilityWindow | None:
    return db.query(AvailabilityWindow).filter(
        AvailabilityWindow.manager_id == manager_id,
        AvailabilityWindow.appointment_kind == kind,
    ).first()


def set_availability(
    db: Session,
    manager_id: str,
    kind: str,
    weekly_blocks: dict[str, list[TimeBlock]],
    blackout_ranges: list[BlackoutRange] | None = None,
) -> AvailabilityWindow:
    """Replace the manager's window for ``kind`` wholesale, creating it if missing.

    Everything is validated before the first write; an existing window keeps
    its identity.
    """
    kind = validate_appointment_kind(kind)
    weekly_blocks = validate_weekly_blocks(weekly_blocks)
    blackout_ranges = validate_blackout_ranges(blackout_ranges or [])

    window = get_availability(db, manager_id, kind)
    if window is None:
        window = AvailabilityWindow(manager_id=manager_id, appointment_kind=kind)
        db.add(window)

    window.weekly_blocks = _serialize_blocks(weekly_blocks)
    window.blackout_ranges = _serialize_blackouts(blackout_ranges)

    try:
        db.commit()
    except IntegrityError:
        # A concurrent first write created the row; replace that one instead.
        db.rollback()
        window = get_availability(db, manager_id, kind)
        window.weekly_blocks = _serialize_blocks(weekly_blocks)
        window.blackout_ranges = _serialize_blackouts(blackout_ranges)
        db.commit()

    db.refresh(window)
    logger.info('Availability saved for manager %s (%s)', manager_id, kind)
    return window
