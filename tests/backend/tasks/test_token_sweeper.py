from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from backend.models.token import QuestionnaireToken
from backend.services.token_service import SecureTokenService
from backend.tasks.token_sweeper import TokenSweeper


def test_run_once_removes_expired_tokens(db, clock) -> None:
    tokens = SecureTokenService(clock=clock)
    tokens.issue_questionnaire_token(db, 'inquiry-1', 1)
    kept = tokens.issue_questionnaire_token(db, 'inquiry-2', 5)
    clock.advance(days=2)

    session_factory = sessionmaker(bind=db.get_bind())
    sweeper = TokenSweeper(tokens, interval_minutes=60, session_factory=session_factory)

    assert sweeper.run_once() == 1
    db.expire_all()
    assert [token.secret for token in db.query(QuestionnaireToken).all()] == [kept.secret]


def test_run_once_logs_and_survives_database_errors(clock) -> None:
    class BrokenTokens(SecureTokenService):
        def sweep_expired(self, db):
            raise OperationalError('DELETE', {}, Exception('database is locked'))

    class FakeSession:
        rolled_back = False
        closed = False

        def rollback(self):
            self.rolled_back = True

        def close(self):
            self.closed = True

    session = FakeSession()
    sweeper = TokenSweeper(BrokenTokens(clock=clock), interval_minutes=60, session_factory=lambda: session)

    assert sweeper.run_once() == 0
    assert session.rolled_back
    assert session.closed


def test_start_and_stop_manage_background_thread(clock) -> None:
    sweeper = TokenSweeper(SecureTokenService(clock=clock), interval_minutes=60, session_factory=lambda: None)

    sweeper.start()
    thread = sweeper._thread
    assert thread is not None and thread.is_alive()

    sweeper.stop()
    assert not thread.is_alive()
    assert sweeper._thread is None
