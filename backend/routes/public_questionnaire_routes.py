import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core.errors import TokenInvalid
from backend.core.schemas import CamelModel
from backend.database import get_db
from backend.models.token import QuestionnaireToken
from backend.routes.public_booking_routes import invalid_link_response
from backend.services.registry import SchedulingServices, get_services
from backend.services.token_service import redact

router = APIRouter(tags=['public-questionnaire'])

logger = logging.getLogger(__name__)

MAX_ANSWER_LENGTH = 2000


class QuestionnaireAnswer(CamelModel):
    question_id: str
    answer: str

    @field_validator('answer')
    @classmethod
    def validate_answer(cls, value: str) -> str:
        normalized = value.strip()
        if len(normalized) > MAX_ANSWER_LENGTH:
            raise ValueError(f'Answers must be {MAX_ANSWER_LENGTH} characters or fewer.')
        return normalized


class SubmitQuestionnaireRequest(CamelModel):
    responses: list[QuestionnaireAnswer]


class QuestionnaireAccessResponse(CamelModel):
    inquiry_id: str


class QuestionnaireSubmittedResponse(CamelModel):
    success: bool
    message: str


@router.get('/{secret}', response_model=QuestionnaireAccessResponse)
def get_questionnaire(
    secret: str,
    db: Session = Depends(get_db),
    services: SchedulingServices = Depends(get_services),
):
    validation = services.tokens.validate_questionnaire_token(db, secret)
    if not validation.valid:
        return invalid_link_response(validation.reason)
    return QuestionnaireAccessResponse(inquiry_id=validation.subject_id)


@router.post('/{secret}/submit', response_model=QuestionnaireSubmittedResponse)
def submit_questionnaire(
    secret: str,
    data: SubmitQuestionnaireRequest,
    db: Session = Depends(get_db),
    services: SchedulingServices = Depends(get_services),
):
    try:
        token = services.tokens.validate_questionnaire_token(db, secret).require_valid()
        inquiry_id = token.inquiry_id
        services.tokens.consume(db, QuestionnaireToken, secret)
        db.commit()
    except TokenInvalid as exc:
        db.rollback()
        return invalid_link_response(exc.reason)
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Error submitting questionnaire %s', redact(secret))
        return JSONResponse(status_code=500, content={'error': 'Failed to submit questionnaire'})

    responses = [answer.model_dump(by_alias=True) for answer in data.responses]
    try:
        services.orchestrator.notifier.questionnaire_submitted(inquiry_id, responses)
    except Exception:
        logger.exception('Questionnaire handoff failed for inquiry %s', inquiry_id)

    return QuestionnaireSubmittedResponse(success=True, message='Thank you! Your responses have been submitted.')
