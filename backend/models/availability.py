"""Availability window model definitions."""

from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import JSON, Column, DateTime, Integer, String, UniqueConstraint

from backend.database import Base

APPOINTMENT_KINDS = ('video_call', 'tour')
WEEKDAYS = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')


@dataclass(frozen=True)
class TimeBlock:
    """A recurring block within one weekday, as HH:MM strings."""

    start_time: str
    end_time: str

    @property
    def start_minute(self) -> int:
        return minute_of_day(self.start_time)

    @property
    def end_minute(self) -> int:
        return minute_of_day(self.end_time)


@dataclass(frozen=True)
class BlackoutRange:
    """Inclusive whole-day range with no bookable time."""

    start_date: date
    end_date: date

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


def minute_of_day(value: str) -> int:
    hours, minutes = value.split(':')
    return int(hours) * 60 + int(minutes)


class AvailabilityWindow(Base):
    """Weekly recurring blocks plus blackout ranges for one (manager, kind)."""
    __tablename__ = "availability_windows"
    __table_args__ = (
        UniqueConstraint('manager_id', 'appointment_kind', name='uq_availability_manager_kind'),
    )

    id = Column(Integer, primary_key=True)
    manager_id = Column(String, nullable=False, index=True)
    appointment_kind = Column(String, nullable=False)
    weekly_blocks = Column(JSON, nullable=False, default=dict)
    blackout_ranges = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def blocks_for(self, weekday: str) -> list[TimeBlock]:
        return [
            TimeBlock(start_time=block['startTime'], end_time=block['endTime'])
            for block in (self.weekly_blocks or {}).get(weekday, [])
        ]

    @property
    def weekly_schedule(self) -> dict[str, list[TimeBlock]]:
        return {weekday: self.blocks_for(weekday) for weekday in (self.weekly_blocks or {})}

    @property
    def blackouts(self) -> list[BlackoutRange]:
        return [
            BlackoutRange(
                start_date=date.fromisoformat(blackout['startDate']),
                end_date=date.fromisoformat(blackout['endDate']),
            )
            for blackout in (self.blackout_ranges or [])
        ]
