from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_manager_id
from backend.core import config
from backend.core.errors import (
    AppointmentNotFound,
    NoAvailabilityError,
    SchedulingConflict,
    SchedulingError,
    ValidationError,
)
from backend.core.schemas import CamelModel
from backend.database import ensure_scheduling_schema, get_db
from backend.models.appointment import APPOINTMENT_STATUSES
from backend.models.availability import BlackoutRange, TimeBlock
from backend.services import appointment_ledger, availability_store
from backend.services.registry import SchedulingServices, get_services
from backend.services.slot_generator import generate_slots

router = APIRouter(tags=['scheduling'])

DATABASE_UNAVAILABLE = 'Database unavailable. Verify DATABASE_URL and Postgres credentials.'
ERROR_STATUS_CODES = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NoAvailabilityError: status.HTTP_404_NOT_FOUND,
    AppointmentNotFound: status.HTTP_404_NOT_FOUND,
    SchedulingConflict: status.HTTP_409_CONFLICT,
}


class TimeBlockModel(CamelModel):
    start_time: str
    end_time: str


class DateRangeModel(CamelModel):
    start_date: date
    end_date: date


class SetAvailabilityRequest(CamelModel):
    schedule_type: str
    recurring_weekly: dict[str, list[TimeBlockModel]]
    blocked_dates: list[DateRangeModel] = []

    @field_validator('schedule_type')
    @classmethod
    def normalize_schedule_type(cls, value: str) -> str:
        return value.strip().lower()


class AvailabilityResponse(CamelModel):
    id: int
    manager_id: str
    schedule_type: str
    recurring_weekly: dict[str, list[TimeBlockModel]]
    blocked_dates: list[DateRangeModel]
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CandidateSlotResponse(CamelModel):
    start_time: datetime
    end_time: datetime


class SlotListResponse(CamelModel):
    slots: list[CandidateSlotResponse]
    count: int


class CreateOfferRequest(CamelModel):
    inquiry_id: str
    appointment_type: str
    days_ahead: int = config.BOOKING_DAYS_AHEAD
    min_slots: int = config.BOOKING_MIN_SLOTS
    duration: int = config.BOOKING_SLOT_MINUTES
    property_address: str | None = None

    @field_validator('inquiry_id')
    @classmethod
    def validate_inquiry_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Inquiry ID is required.')
        return normalized


class BookingLinkResponse(CamelModel):
    start_time: datetime
    end_time: datetime
    booking_token: str
    booking_url: str
    is_used: bool = False
    expires_at: datetime | None = None


class OfferResponse(CamelModel):
    inquiry_id: str
    slots: list[BookingLinkResponse]
    expires_at: datetime


class QuestionnaireLinkRequest(CamelModel):
    inquiry_id: str
    expires_in_days: int = config.QUESTIONNAIRE_TOKEN_DAYS


class QuestionnaireLinkResponse(CamelModel):
    inquiry_id: str
    token: str
    url: str
    expires_at: datetime


class CreateAppointmentRequest(CamelModel):
    inquiry_id: str
    type: str
    scheduled_time: datetime
    duration: int
    property_address: str | None = None

    @field_validator('type')
    @classmethod
    def normalize_type(cls, value: str) -> str:
        return value.strip().lower()


class AppointmentResponse(CamelModel):
    id: str
    inquiry_id: str
    kind: str
    scheduled_time: datetime
    duration_minutes: int
    meeting_link: str | None = None
    property_address: str | None = None
    status: str
    cancelled_at: datetime | None = None


class AppointmentListResponse(CamelModel):
    appointments: list[AppointmentResponse]
    total: int


def ensure_database_ready() -> None:
    try:
        ensure_scheduling_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


def to_http_exception(exc: SchedulingError) -> HTTPException:
    status_code = ERROR_STATUS_CODES.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=status_code, detail=exc.message)


def database_unavailable(db: Session) -> HTTPException:
    db.rollback()
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=DATABASE_UNAVAILABLE)


def booking_url(secret: str) -> str:
    return f'{config.CLIENT_URL}/booking/{secret}'


def questionnaire_url(secret: str) -> str:
    return f'{config.CLIENT_URL}/questionnaire/{secret}'


def availability_response(window) -> AvailabilityResponse:
    return AvailabilityResponse(
        id=window.id,
        manager_id=window.manager_id,
        schedule_type=window.appointment_kind,
        recurring_weekly=window.weekly_blocks,
        blocked_dates=window.blackout_ranges,
        created_at=window.created_at,
        updated_at=window.updated_at,
    )


@router.post('/availability', response_model=AvailabilityResponse, status_code=status.HTTP_201_CREATED)
def set_availability(
    data: SetAvailabilityRequest,
    manager_id: str = Depends(get_current_manager_id),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    weekly_blocks = {
        day: [TimeBlock(start_time=block.start_time, end_time=block.end_time) for block in blocks]
        for day, blocks in data.recurring_weekly.items()
    }
    blackout_ranges = [
        BlackoutRange(start_date=blocked.start_date, end_date=blocked.end_date)
        for blocked in data.blocked_dates
    ]

    try:
        window = availability_store.set_availability(
            db, manager_id, data.schedule_type, weekly_blocks, blackout_ranges,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    return availability_response(window)


@router.get('/availability')
def get_availability(
    schedule_type: str = Query(..., alias='scheduleType'),
    manager_id: str = Depends(get_current_manager_id),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        kind = availability_store.validate_appointment_kind(schedule_type)
        window = availability_store.get_availability(db, manager_id, kind)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    if window is None:
        return {'message': 'No availability schedule found', 'schedule': None}
    return availability_response(window).model_dump(by_alias=True, mode='json')


@router.get('/availability/slots', response_model=SlotListResponse)
def list_available_slots(
    appointment_type: str = Query(..., alias='appointmentType'),
    slot_date: date = Query(..., alias='date'),
    duration: int = Query(default=config.BOOKING_SLOT_MINUTES, ge=1, le=480),
    manager_id: str = Depends(get_current_manager_id),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        kind = availability_store.validate_appointment_kind(appointment_type)
        slots = [
            slot
            for slot in generate_slots(db, manager_id, kind, slot_date, duration)
            if appointment_ledger.is_bookable(db, manager_id, slot.start_time, duration)
        ]
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    return SlotListResponse(
        slots=[CandidateSlotResponse(start_time=slot.start_time, end_time=slot.end_time) for slot in slots],
        count=len(slots),
    )


@router.post('/offers', response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
def create_offer(
    data: CreateOfferRequest,
    manager_id: str = Depends(get_current_manager_id),
    db: Session = Depends(get_db),
    services: SchedulingServices = Depends(get_services),
):
    ensure_database_ready()

    try:
        offer = services.orchestrator.offer_slots(
            db,
            inquiry_id=data.inquiry_id,
            manager_id=manager_id,
            kind=data.appointment_type,
            days_ahead=data.days_ahead,
            min_slots_to_offer=data.min_slots,
            slot_duration_minutes=data.duration,
            property_address=data.property_address,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    return OfferResponse(
        inquiry_id=offer.inquiry_id,
        slots=[
            BookingLinkResponse(
                start_time=slot.start_time,
                end_time=slot.end_time,
                booking_token=slot.redeem_secret,
                booking_url=booking_url(slot.redeem_secret),
                expires_at=offer.link_expires_at,
            )
            for slot in offer.slots
        ],
        expires_at=offer.link_expires_at,
    )


@router.get('/offers/{inquiry_id}', response_model=list[BookingLinkResponse])
def list_offered_links(
    inquiry_id: str,
    manager_id: str = Depends(get_current_manager_id),
    db: Session = Depends(get_db),
    services: SchedulingServices = Depends(get_services),
):
    ensure_database_ready()

    try:
        tokens = [
            token for token in services.tokens.booking_tokens_for_inquiry(db, inquiry_id)
            if token.manager_id == manager_id
        ]
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    return [
        BookingLinkResponse(
            start_time=token.slot_start_time,
            end_time=token.slot_end_time,
            booking_token=token.secret,
            booking_url=booking_url(token.secret),
            is_used=token.is_used,
            expires_at=token.expires_at,
        )
        for token in tokens
    ]


@router.post(
    '/questionnaire-links',
    response_model=QuestionnaireLinkResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_questionnaire_link(
    data: QuestionnaireLinkRequest,
    regenerate: bool = Query(default=False),
    manager_id: str = Depends(get_current_manager_id),
    db: Session = Depends(get_db),
    services: SchedulingServices = Depends(get_services),
):
    del manager_id
    ensure_database_ready()

    if data.expires_in_days <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='expiresInDays must be positive.')

    try:
        if regenerate:
            token = services.tokens.regenerate_questionnaire_token(db, data.inquiry_id, data.expires_in_days)
        else:
            token = services.tokens.issue_questionnaire_token(db, data.inquiry_id, data.expires_in_days)
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    return QuestionnaireLinkResponse(
        inquiry_id=token.inquiry_id,
        token=token.secret,
        url=questionnaire_url(token.secret),
        expires_at=token.expires_at,
    )


@router.post('/appointments', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    manager_id: str = Depends(get_current_manager_id),
    db: Session = Depends(get_db),
    services: SchedulingServices = Depends(get_services),
):
    ensure_database_ready()

    try:
        appointment = services.orchestrator.schedule_appointment(
            db,
            manager_id=manager_id,
            inquiry_id=data.inquiry_id.strip(),
            kind=data.type,
            scheduled_time=data.scheduled_time.replace(second=0, microsecond=0),
            duration_minutes=data.duration,
            property_address=data.property_address,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    return AppointmentResponse.model_validate(appointment)


@router.get('/appointments', response_model=AppointmentListResponse)
def list_appointments(
    appointment_status: str | None = Query(default=None, alias='status'),
    start_date: datetime | None = Query(default=None, alias='startDate'),
    end_date: datetime | None = Query(default=None, alias='endDate'),
    manager_id: str = Depends(get_current_manager_id),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    if appointment_status is not None and appointment_status not in APPOINTMENT_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid appointment status.')

    try:
        appointments = appointment_ledger.list_appointments(
            db, manager_id, status=appointment_status, start=start_date, end=end_date,
        )
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    return AppointmentListResponse(
        appointments=[AppointmentResponse.model_validate(appointment) for appointment in appointments],
        total=len(appointments),
    )


@router.delete('/appointments/{appointment_id}', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: str,
    manager_id: str = Depends(get_current_manager_id),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = appointment_ledger.cancel_appointment(db, manager_id, appointment_id, datetime.now())
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    return AppointmentResponse.model_validate(appointment)


@router.post('/appointments/{appointment_id}/complete', response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: str,
    manager_id: str = Depends(get_current_manager_id),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = appointment_ledger.complete_appointment(db, manager_id, appointment_id, datetime.now())
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    return AppointmentResponse.model_validate(appointment)
