import os
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('TOKEN_SWEEP_ENABLED', 'false')

from backend.database import Base  # noqa: E402
from backend.models import appointment, availability, token  # noqa: E402,F401
from backend.services.lock_registry import ManagerLockRegistry  # noqa: E402
from backend.services.scheduling import SchedulingOrchestrator  # noqa: E402
from backend.services.registry import SchedulingServices  # noqa: E402
from backend.services.token_service import SecureTokenService  # noqa: E402

# Monday.
START_OF_WEEK = datetime(2026, 1, 5, 8, 0)


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self):
        self.offers = []
        self.booked = []
        self.questionnaires = []

    def slots_offered(self, offer) -> None:
        self.offers.append(offer)

    def appointment_booked(self, appointment) -> None:
        self.booked.append(appointment.id)

    def questionnaire_submitted(self, inquiry_id, responses) -> None:
        self.questionnaires.append((inquiry_id, responses))


@pytest.fixture
def db():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(START_OF_WEEK)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def services(clock, notifier) -> SchedulingServices:
    locks = ManagerLockRegistry()
    tokens = SecureTokenService(clock=clock)
    orchestrator = SchedulingOrchestrator(
        tokens=tokens,
        locks=locks,
        meeting_links=None,
        notifier=notifier,
        clock=clock,
        deferred_meeting_link='https://example.test/meeting-pending',
        max_offered_slots=10,
    )
    return SchedulingServices(locks=locks, tokens=tokens, orchestrator=orchestrator)
