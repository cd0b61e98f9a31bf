"""Interfaces to the meeting-link and messaging collaborators."""

import logging
import uuid
from datetime import datetime

from backend.core.errors import MeetingLinkError

logger = logging.getLogger(__name__)


class MeetingLinkProvider:
    """Creates a meeting and returns its join URL."""

    def create_meeting(self, start_time: datetime, duration_minutes: int, summary: str) -> str:
        raise NotImplementedError


class RoomMeetingLinkProvider(MeetingLinkProvider):
    """Hands out a fresh room under a fixed conferencing base URL."""

    def __init__(self, base_url: str):
        if not base_url:
            raise MeetingLinkError('Meeting base URL is not configured.')
        self.base_url = base_url.rstrip('/')

    def create_meeting(self, start_time: datetime, duration_minutes: int, summary: str) -> str:
        room = f'{start_time:%Y%m%d%H%M}-{uuid.uuid4().hex[:12]}'
        return f'{self.base_url}/{room}'


class SchedulingNotifier:
    """Receives scheduling events for the messaging layer. Logs by default."""

    def slots_offered(self, offer) -> None:
        logger.info('Offered %s slots for inquiry %s', len(offer.slots), offer.inquiry_id)

    def appointment_booked(self, appointment) -> None:
        logger.info(
            'Appointment %s booked for inquiry %s at %s',
            appointment.id, appointment.inquiry_id, appointment.scheduled_time.isoformat(),
        )

    def questionnaire_submitted(self, inquiry_id: str, responses: list[dict]) -> None:
        logger.info('Questionnaire submitted for inquiry %s with %s responses', inquiry_id, len(responses))
