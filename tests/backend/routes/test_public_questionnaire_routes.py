import json

import pytest
from pydantic import ValidationError

from backend.routes.public_questionnaire_routes import (
    SubmitQuestionnaireRequest,
    get_questionnaire,
    submit_questionnaire,
)


def body(response) -> dict:
    return json.loads(response.body)


def test_get_questionnaire_returns_inquiry(db, services) -> None:
    token = services.tokens.issue_questionnaire_token(db, 'inquiry-7', 7)

    response = get_questionnaire(secret=token.secret, db=db, services=services)

    assert response.model_dump(by_alias=True) == {'inquiryId': 'inquiry-7'}


def test_submit_consumes_token_and_forwards_responses(db, services, notifier) -> None:
    token = services.tokens.issue_questionnaire_token(db, 'inquiry-7', 7)
    data = SubmitQuestionnaireRequest.model_validate(
        {'responses': [{'questionId': 'q1', 'answer': '  Two cats  '}]}
    )

    submitted = submit_questionnaire(secret=token.secret, data=data, db=db, services=services)
    again = submit_questionnaire(secret=token.secret, data=data, db=db, services=services)

    assert submitted.success is True
    assert notifier.questionnaires == [('inquiry-7', [{'questionId': 'q1', 'answer': 'Two cats'}])]
    assert again.status_code == 400
    assert body(again)['code'] == 'used'


def test_expired_questionnaire_link(db, services, clock) -> None:
    token = services.tokens.issue_questionnaire_token(db, 'inquiry-7', 1)
    clock.advance(days=2)

    response = get_questionnaire(secret=token.secret, db=db, services=services)

    assert response.status_code == 400
    assert body(response) == {'error': 'This link has expired.', 'code': 'expired'}


def test_submit_request_rejects_overlong_answers() -> None:
    with pytest.raises(ValidationError):
        SubmitQuestionnaireRequest.model_validate({'responses': [{'questionId': 'q1', 'answer': 'x' * 2001}]})
