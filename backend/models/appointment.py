"""Appointment model definitions."""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Union

from sqlalchemy import Column, DateTime, Index, Integer, String
from backend.database import Base

STATUS_SCHEDULED = 'scheduled'
STATUS_CANCELLED = 'cancelled'
STATUS_COMPLETED = 'completed'
APPOINTMENT_STATUSES = (STATUS_SCHEDULED, STATUS_CANCELLED, STATUS_COMPLETED)


@dataclass(frozen=True)
class VideoCallDetails:
    meeting_link: str | None


@dataclass(frozen=True)
class TourDetails:
    property_address: str | None


AppointmentDetails = Union[VideoCallDetails, TourDetails]


class Appointment(Base):
    """Represents a booked appointment on a manager's calendar."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index('idx_appointments_manager_time', 'manager_id', 'scheduled_time'),
        Index('idx_appointments_inquiry', 'inquiry_id'),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    manager_id = Column(String, nullable=False)
    inquiry_id = Column(String, nullable=False)
    kind = Column(String, nullable=False)
    scheduled_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    meeting_link = Column(String)
    property_address = Column(String)
    status = Column(String, nullable=False, default=STATUS_SCHEDULED)
    created_at = Column(DateTime, default=datetime.now)
    cancelled_at = Column(DateTime)

    @property
    def details(self) -> AppointmentDetails:
        if self.kind == 'video_call':
            return VideoCallDetails(meeting_link=self.meeting_link)
        return TourDetails(property_address=self.property_address)


class SchedulingLock(Base):
    """One row per manager, locked while a booking is checked and written."""
    __tablename__ = "scheduling_locks"

    manager_id = Column(String, primary_key=True)
    created_at = Column(DateTime, default=datetime.now)
