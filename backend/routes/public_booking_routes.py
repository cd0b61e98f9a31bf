import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core.errors import SchedulingConflict, TokenInvalid
from backend.core.schemas import CamelModel
from backend.database import get_db
from backend.services.registry import SchedulingServices, get_services
from backend.services.token_service import redact

router = APIRouter(tags=['public-booking'])

logger = logging.getLogger(__name__)


class SlotInfoResponse(CamelModel):
    start_time: datetime
    end_time: datetime
    appointment_type: str
    human_date: str
    human_time: str
    duration_minutes: int


class BookingDetailsResponse(CamelModel):
    slot_info: SlotInfoResponse


class BookingConfirmationResponse(CamelModel):
    success: bool
    appointment_id: str
    message: str


def format_human_date(value: datetime) -> str:
    return f'{value:%A, %B} {value.day}, {value.year}'


def format_human_time(value: datetime) -> str:
    hour = value.hour % 12 or 12
    suffix = 'AM' if value.hour < 12 else 'PM'
    return f'{hour}:{value.minute:02d} {suffix}'


def invalid_link_response(reason: str) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={'error': TokenInvalid(reason).message, 'code': reason},
    )


@router.get('/{secret}', response_model=BookingDetailsResponse)
def get_booking_details(
    secret: str,
    db: Session = Depends(get_db),
    services: SchedulingServices = Depends(get_services),
):
    try:
        validation = services.orchestrator.describe_booking(db, secret)
    except SQLAlchemyError:
        logger.exception('Error loading booking details for %s', redact(secret))
        return JSONResponse(status_code=500, content={'error': 'Failed to load booking details'})

    if not validation.valid:
        return invalid_link_response(validation.reason)

    token = validation.token
    return BookingDetailsResponse(
        slot_info=SlotInfoResponse(
            start_time=token.slot_start_time,
            end_time=token.slot_end_time,
            appointment_type=token.appointment_kind,
            human_date=format_human_date(token.slot_start_time),
            human_time=format_human_time(token.slot_start_time),
            duration_minutes=token.duration_minutes,
        )
    )


@router.post('/{secret}/confirm', response_model=BookingConfirmationResponse)
def confirm_booking(
    secret: str,
    db: Session = Depends(get_db),
    services: SchedulingServices = Depends(get_services),
):
    try:
        appointment = services.orchestrator.redeem(db, secret)
    except TokenInvalid as exc:
        return invalid_link_response(exc.reason)
    except SchedulingConflict:
        return JSONResponse(
            status_code=400,
            content={'error': 'This time is no longer available. Please request new times.', 'code': 'conflict'},
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Error confirming booking %s', redact(secret))
        return JSONResponse(status_code=500, content={'error': 'Failed to confirm booking'})

    logger.info('Appointment %s confirmed via public booking', appointment.id)
    return BookingConfirmationResponse(
        success=True,
        appointment_id=appointment.id,
        message='Your appointment has been confirmed!',
    )
