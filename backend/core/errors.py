"""Scheduling error taxonomy.

Services raise these; routes decide which HTTP status each one maps to.
"""

TOKEN_NOT_FOUND = 'not_found'
TOKEN_USED = 'used'
TOKEN_EXPIRED = 'expired'


class SchedulingError(Exception):
    """Base class for expected scheduling failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SchedulingError):
    """Malformed schedule or booking input, rejected before any write."""


class NoAvailabilityError(SchedulingError):
    def __init__(self, message: str = 'No available time slots found.'):
        super().__init__(message)


class SchedulingConflict(SchedulingError):
    def __init__(self, conflicting_ids: list[str] | None = None):
        super().__init__('This time is already booked.')
        self.conflicting_ids = conflicting_ids or []


class TokenInvalid(SchedulingError):
    MESSAGES = {
        TOKEN_NOT_FOUND: 'This link is not valid.',
        TOKEN_USED: 'This link was already used.',
        TOKEN_EXPIRED: 'This link has expired.',
    }

    def __init__(self, reason: str):
        super().__init__(self.MESSAGES.get(reason, 'This link is not valid.'))
        self.reason = reason


class AppointmentNotFound(SchedulingError):
    def __init__(self, message: str = 'Appointment not found.'):
        super().__init__(message)


class MeetingLinkError(SchedulingError):
    """Raised by meeting-link providers; never surfaces as a booking failure."""
