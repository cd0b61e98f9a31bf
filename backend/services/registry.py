"""Construction and ownership of the long-lived scheduling services."""

import logging
from dataclasses import dataclass

from fastapi import Request

from backend.core import config
from backend.services.collaborators import MeetingLinkProvider, RoomMeetingLinkProvider, SchedulingNotifier
from backend.services.lock_registry import ManagerLockRegistry
from backend.services.scheduling import SchedulingOrchestrator
from backend.services.token_service import SecureTokenService

logger = logging.getLogger(__name__)


@dataclass
class SchedulingServices:
    locks: ManagerLockRegistry
    tokens: SecureTokenService
    orchestrator: SchedulingOrchestrator

    def close(self) -> None:
        self.locks.clear()


def build_meeting_link_provider() -> MeetingLinkProvider | None:
    if not config.MEETING_BASE_URL:
        logger.warning('MEETING_BASE_URL not set; video calls will get a placeholder link')
        return None
    return RoomMeetingLinkProvider(config.MEETING_BASE_URL)


def build_services(
    meeting_links: MeetingLinkProvider | None = None,
    notifier: SchedulingNotifier | None = None,
) -> SchedulingServices:
    locks = ManagerLockRegistry()
    tokens = SecureTokenService()
    orchestrator = SchedulingOrchestrator(
        tokens=tokens,
        locks=locks,
        meeting_links=meeting_links if meeting_links is not None else build_meeting_link_provider(),
        notifier=notifier,
        deferred_meeting_link=config.DEFERRED_MEETING_LINK,
        max_offered_slots=config.BOOKING_MAX_OFFERED_SLOTS,
    )
    return SchedulingServices(locks=locks, tokens=tokens, orchestrator=orchestrator)


def get_services(request: Request) -> SchedulingServices:
    return request.app.state.services
