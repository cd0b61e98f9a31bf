"""Issuing, validating and consuming single-use link tokens."""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import update
from sqlalchemy.orm import Session

from backend.core.errors import TOKEN_EXPIRED, TOKEN_NOT_FOUND, TOKEN_USED, TokenInvalid
from backend.models.token import BookingToken, QuestionnaireToken

logger = logging.getLogger(__name__)

# 32 random bytes, 256 bits of entropy.
SECRET_BYTES = 32


def new_secret() -> str:
    return secrets.token_urlsafe(SECRET_BYTES)


def redact(secret: str) -> str:
    return f'{secret[:8]}...'


@dataclass(frozen=True)
class TokenValidation:
    valid: bool
    token: BookingToken | QuestionnaireToken | None = None
    reason: str | None = None

    @property
    def subject_id(self) -> str | None:
        return self.token.inquiry_id if self.token is not None else None

    def require_valid(self):
        if not self.valid:
            raise TokenInvalid(self.reason)
        return self.token


class SecureTokenService:
    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self.clock = clock

    def issue_booking_token(
        self,
        db: Session,
        *,
        inquiry_id: str,
        manager_id: str,
        appointment_kind: str,
        slot_start_time: datetime,
        slot_end_time: datetime,
        expires_in_days: int,
        property_address: str | None = None,
    ) -> BookingToken:
        """Stage a booking token; the caller commits the batch."""
        now = self.clock()
        token = BookingToken(
            inquiry_id=inquiry_id,
            manager_id=manager_id,
            appointment_kind=appointment_kind,
            slot_start_time=slot_start_time,
            slot_end_time=slot_end_time,
            property_address=property_address,
            secret=new_secret(),
            created_at=now,
            expires_at=now + timedelta(days=expires_in_days),
            is_used=False,
        )
        db.add(token)
        return token

    def issue_questionnaire_token(self, db: Session, inquiry_id: str, expires_in_days: int) -> QuestionnaireToken:
        now = self.clock()
        token = QuestionnaireToken(
            inquiry_id=inquiry_id,
            secret=new_secret(),
            created_at=now,
            expires_at=now + timedelta(days=expires_in_days),
            is_used=False,
        )
        db.add(token)
        db.commit()
        db.refresh(token)
        logger.info('Questionnaire token issued for inquiry %s, expires %s', inquiry_id, token.expires_at)
        return token

    def regenerate_questionnaire_token(self, db: Session, inquiry_id: str, expires_in_days: int) -> QuestionnaireToken:
        """Mint a fresh token; earlier ones stay usable until they expire or are used."""
        logger.info('Regenerating questionnaire token for inquiry %s', inquiry_id)
        return self.issue_questionnaire_token(db, inquiry_id, expires_in_days)

    def _validate(self, db: Session, model, secret: str) -> TokenValidation:
        token = db.query(model).filter(model.secret == secret).first()

        if token is None:
            reason = TOKEN_NOT_FOUND
        elif token.is_used:
            reason = TOKEN_USED
        elif token.expiry_reached(self.clock()):
            reason = TOKEN_EXPIRED
        else:
            return TokenValidation(valid=True, token=token)

        logger.warning('%s %s rejected: %s', model.__name__, redact(secret), reason)
        return TokenValidation(valid=False, token=token, reason=reason)

    def validate_booking_token(self, db: Session, secret: str) -> TokenValidation:
        return self._validate(db, BookingToken, secret)

    def validate_questionnaire_token(self, db: Session, secret: str) -> TokenValidation:
        return self._validate(db, QuestionnaireToken, secret)

    def consume(self, db: Session, model, secret: str) -> None:
        """Flip ``is_used`` from false to true, exactly once.

        Does not commit. A second call for the same secret raises
        ``TokenInvalid('used')`` instead of succeeding again.
        """
        result = db.execute(
            update(model)
            .where(model.secret == secret, model.is_used.is_(False))
            .values(is_used=True, used_at=self.clock())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise TokenInvalid(TOKEN_USED)

    def booking_tokens_for_inquiry(self, db: Session, inquiry_id: str) -> list[BookingToken]:
        return db.query(BookingToken).filter(
            BookingToken.inquiry_id == inquiry_id,
        ).order_by(BookingToken.slot_start_time.asc()).all()

    def sweep_expired(self, db: Session) -> int:
        """Delete every token whose ``expires_at`` is already behind us."""
        now = self.clock()
        count = 0
        for model in (BookingToken, QuestionnaireToken):
            count += db.query(model).filter(model.expires_at < now).delete(synchronize_session=False)
        db.commit()
        logger.info('Swept %s expired tokens', count)
        return count
