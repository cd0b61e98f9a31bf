"""Single-use link token model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String

from backend.database import Base


class TokenColumns:
    """Fields shared by every link token."""

    id = Column(Integer, primary_key=True)
    inquiry_id = Column(String, nullable=False)
    secret = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    expires_at = Column(DateTime, nullable=False)
    is_used = Column(Boolean, nullable=False, default=False)
    used_at = Column(DateTime)

    def expiry_reached(self, now: datetime) -> bool:
        return now > self.expires_at


class BookingToken(TokenColumns, Base):
    """Credential for claiming one offered slot."""
    __tablename__ = "booking_tokens"
    __table_args__ = (
        Index('idx_booking_tokens_secret', 'secret', unique=True),
        Index('idx_booking_tokens_expires', 'expires_at'),
        Index('idx_booking_tokens_inquiry', 'inquiry_id'),
    )

    manager_id = Column(String, nullable=False)
    appointment_kind = Column(String, nullable=False)
    slot_start_time = Column(DateTime, nullable=False)
    slot_end_time = Column(DateTime, nullable=False)
    property_address = Column(String)

    @property
    def duration_minutes(self) -> int:
        return int((self.slot_end_time - self.slot_start_time).total_seconds() // 60)

    def expiry_reached(self, now: datetime) -> bool:
        return now > self.expires_at or now > self.slot_start_time


class QuestionnaireToken(TokenColumns, Base):
    """Credential for answering an inquiry's questionnaire."""
    __tablename__ = "questionnaire_tokens"
    __table_args__ = (
        Index('idx_questionnaire_tokens_secret', 'secret', unique=True),
        Index('idx_questionnaire_tokens_expires', 'expires_at'),
    )
