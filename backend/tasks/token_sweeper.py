"""Periodic removal of expired link tokens, off the request path."""

import logging
from threading import Event, Thread

from sqlalchemy.exc import SQLAlchemyError

from backend.database import SessionLocal
from backend.services.token_service import SecureTokenService

logger = logging.getLogger(__name__)


class TokenSweeper:
    def __init__(self, tokens: SecureTokenService, interval_minutes: int, session_factory=SessionLocal):
        self.tokens = tokens
        self.interval_seconds = interval_minutes * 60
        self.session_factory = session_factory
        self._stop = Event()
        self._thread: Thread | None = None

    def run_once(self) -> int:
        db = self.session_factory()
        try:
            return self.tokens.sweep_expired(db)
        except SQLAlchemyError:
            db.rollback()
            logger.exception('Token sweep failed')
            return 0
        finally:
            db.close()

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            self.run_once()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = Thread(target=self._loop, name='token-sweeper', daemon=True)
        self._thread.start()
        logger.info('Token sweeper started (every %s s)', self.interval_seconds)

    def stop(self) -> None:
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join(timeout=5)
        self._thread = None
        logger.info('Token sweeper stopped')
