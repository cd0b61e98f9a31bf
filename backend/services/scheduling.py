"""Offering bookable links and turning redeemed links into appointments."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core.errors import MeetingLinkError, NoAvailabilityError, ValidationError
from backend.models.appointment import Appointment
from backend.models.token import BookingToken
from backend.services import appointment_ledger
from backend.services.availability_store import validate_appointment_kind
from backend.services.collaborators import MeetingLinkProvider, SchedulingNotifier
from backend.services.lock_registry import ManagerLockRegistry
from backend.services.slot_generator import CandidateSlot, generate_slots
from backend.services.token_service import SecureTokenService, TokenValidation, redact

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OfferedSlot:
    start_time: datetime
    end_time: datetime
    redeem_secret: str


@dataclass(frozen=True)
class SlotOffer:
    inquiry_id: str
    slots: list[OfferedSlot]
    link_expires_at: datetime


class SchedulingOrchestrator:
    def __init__(
        self,
        tokens: SecureTokenService,
        locks: ManagerLockRegistry,
        meeting_links: MeetingLinkProvider | None = None,
        notifier: SchedulingNotifier | None = None,
        clock: Callable[[], datetime] = datetime.now,
        deferred_meeting_link: str | None = None,
        max_offered_slots: int = 10,
    ):
        self.tokens = tokens
        self.locks = locks
        self.meeting_links = meeting_links
        self.notifier = notifier or SchedulingNotifier()
        self.clock = clock
        self.deferred_meeting_link = deferred_meeting_link
        self.max_offered_slots = max_offered_slots

    def collect_candidates(
        self,
        db: Session,
        manager_id: str,
        kind: str,
        days_ahead: int,
        min_slots_to_offer: int,
        slot_duration_minutes: int,
    ) -> list[CandidateSlot]:
        now = self.clock()
        today = now.date()
        collected: list[CandidateSlot] = []

        # Over-collect so truncation still leaves a full offer.
        for offset in range(days_ahead):
            if len(collected) >= min_slots_to_offer * 2:
                break
            day = today + timedelta(days=offset)
            for slot in generate_slots(db, manager_id, kind, day, slot_duration_minutes):
                if slot.start_time <= now:
                    continue
                if appointment_ledger.is_bookable(db, manager_id, slot.start_time, slot_duration_minutes):
                    collected.append(slot)

        return collected

    def offer_slots(
        self,
        db: Session,
        *,
        inquiry_id: str,
        manager_id: str,
        kind: str,
        days_ahead: int,
        min_slots_to_offer: int,
        slot_duration_minutes: int,
        property_address: str | None = None,
    ) -> SlotOffer:
        kind = validate_appointment_kind(kind)
        if days_ahead <= 0 or min_slots_to_offer <= 0 or slot_duration_minutes <= 0:
            raise ValidationError('daysAhead, minSlots and duration must be positive.')

        candidates = self.collect_candidates(
            db, manager_id, kind, days_ahead, min_slots_to_offer, slot_duration_minutes,
        )
        if not candidates:
            logger.warning('No available slots for inquiry %s (manager %s)', inquiry_id, manager_id)
            raise NoAvailabilityError()

        kept = candidates[:max(min_slots_to_offer, self.max_offered_slots)]
        minted = [
            self.tokens.issue_booking_token(
                db,
                inquiry_id=inquiry_id,
                manager_id=manager_id,
                appointment_kind=kind,
                slot_start_time=slot.start_time,
                slot_end_time=slot.end_time,
                expires_in_days=days_ahead,
                property_address=property_address,
            )
            for slot in kept
        ]
        db.commit()

        offer = SlotOffer(
            inquiry_id=inquiry_id,
            slots=[
                OfferedSlot(start_time=token.slot_start_time, end_time=token.slot_end_time, redeem_secret=token.secret)
                for token in minted
            ],
            link_expires_at=self.clock() + timedelta(days=days_ahead),
        )
        logger.info('Generated %s booking links for inquiry %s', len(offer.slots), inquiry_id)
        self._notify('slots_offered', offer)
        return offer

    def describe_booking(self, db: Session, secret: str) -> TokenValidation:
        return self.tokens.validate_booking_token(db, secret)

    def redeem(self, db: Session, secret: str) -> Appointment:
        """Exchange a booking secret for an appointment.

        The token is validated again, the slot re-checked, the appointment
        written and the token consumed in one transaction under the
        manager's booking lock.
        """
        token = self.tokens.validate_booking_token(db, secret).require_valid()
        manager_id = token.manager_id

        with appointment_ledger.booking_guard(db, self.locks, manager_id):
            token = self.tokens.validate_booking_token(db, secret).require_valid()
            appointment = appointment_ledger.insert_appointment(
                db,
                manager_id=manager_id,
                inquiry_id=token.inquiry_id,
                kind=token.appointment_kind,
                scheduled_time=token.slot_start_time,
                duration_minutes=token.duration_minutes,
                property_address=token.property_address,
            )
            self.tokens.consume(db, BookingToken, secret)
            db.commit()

        db.refresh(appointment)
        logger.info('Booking link %s redeemed as appointment %s', redact(secret), appointment.id)
        return self._finish_booking(db, appointment)

    def schedule_appointment(
        self,
        db: Session,
        *,
        manager_id: str,
        inquiry_id: str,
        kind: str,
        scheduled_time: datetime,
        duration_minutes: int,
        property_address: str | None = None,
    ) -> Appointment:
        appointment = appointment_ledger.schedule_appointment(
            db,
            self.locks,
            manager_id=manager_id,
            inquiry_id=inquiry_id,
            kind=validate_appointment_kind(kind),
            scheduled_time=scheduled_time,
            duration_minutes=duration_minutes,
            now=self.clock(),
            property_address=property_address,
        )
        return self._finish_booking(db, appointment)

    def _finish_booking(self, db: Session, appointment: Appointment) -> Appointment:
        if appointment.kind == 'video_call':
            self._attach_meeting_link(db, appointment)
        self._notify('appointment_booked', appointment)
        return appointment

    def _attach_meeting_link(self, db: Session, appointment: Appointment) -> None:
        try:
            if self.meeting_links is None:
                raise MeetingLinkError('No meeting-link provider configured.')
            link = self.meeting_links.create_meeting(
                appointment.scheduled_time,
                appointment.duration_minutes,
                f'Video call for inquiry {appointment.inquiry_id}',
            )
        except Exception:
            logger.exception('Meeting link creation failed for appointment %s; using placeholder', appointment.id)
            link = self.deferred_meeting_link

        try:
            appointment.meeting_link = link
            db.commit()
            db.refresh(appointment)
        except SQLAlchemyError:
            db.rollback()
            logger.exception('Could not store meeting link for appointment %s', appointment.id)

    def _notify(self, event: str, payload) -> None:
        try:
            getattr(self.notifier, event)(payload)
        except Exception:
            logger.exception('Notifier failed handling %s', event)
