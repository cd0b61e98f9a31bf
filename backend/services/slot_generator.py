"""Expansion of a weekly schedule into fixed-length candidate slots."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy.orm import Session

from backend.models.availability import WEEKDAYS, AvailabilityWindow, BlackoutRange, TimeBlock
from backend.services.availability_store import get_availability


@dataclass(frozen=True)
class CandidateSlot:
    start_time: datetime
    end_time: datetime


def is_date_blacked_out(day: date, blackout_ranges: list[BlackoutRange]) -> bool:
    return any(blackout.covers(day) for blackout in blackout_ranges)


def iterate_block_slots(day: date, block: TimeBlock, slot_duration_minutes: int) -> list[CandidateSlot]:
    slots: list[CandidateSlot] = []
    block_start = datetime.combine(day, time.min) + timedelta(minutes=block.start_minute)
    block_end = datetime.combine(day, time.min) + timedelta(minutes=block.end_minute)
    duration = timedelta(minutes=slot_duration_minutes)

    current = block_start
    while current + duration <= block_end:
        slots.append(CandidateSlot(start_time=current, end_time=current + duration))
        current += duration

    return slots


def expand_window(window: AvailabilityWindow, day: date, slot_duration_minutes: int) -> list[CandidateSlot]:
    if slot_duration_minutes <= 0:
        raise ValueError('slot_duration_minutes must be positive')

    if is_date_blacked_out(day, window.blackouts):
        return []

    slots: list[CandidateSlot] = []
    for block in window.blocks_for(WEEKDAYS[day.weekday()]):
        slots.extend(iterate_block_slots(day, block, slot_duration_minutes))

    return slots


def generate_slots(
    db: Session,
    manager_id: str,
    kind: str,
    day: date,
    slot_duration_minutes: int,
) -> list[CandidateSlot]:
    window = get_availability(db, manager_id, kind)
    if window is None:
        return []
    return expand_window(window, day, slot_duration_minutes)
