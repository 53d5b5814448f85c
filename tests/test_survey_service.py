from datetime import timedelta

import pytest

from loyaltyapi.core.exceptions import AlreadyProcessedError, NotFoundError, ValidationError
from loyaltyapi.schemas.survey import (
    SurveyAnswer,
    SurveyCreateRequest,
    SurveySubmitRequest,
)
from loyaltyapi.services.ledger_service import LedgerService
from loyaltyapi.services.survey_service import FRAUD_REASON, SurveyService, detect_fraud
from loyaltyapi.utils.timezone_utils import now_utc

QUESTIONS = [
    {
        "id": "q1",
        "text": "How often do you drink tea?",
        "type": "single-choice",
        "is_required": True,
        "is_anti_fraud": True,
        "options": [
            {"text": "Daily", "anti_fraud_group_id": "heavy"},
            {"text": "Rarely", "anti_fraud_group_id": "light"},
        ],
    },
    {
        "id": "q2",
        "text": "Cups per week?",
        "type": "single-choice",
        "is_required": True,
        "is_anti_fraud": True,
        "options": [
            {"text": "More than 7", "anti_fraud_group_id": "heavy"},
            {"text": "One or two", "anti_fraud_group_id": "light"},
        ],
    },
    {"id": "q3", "text": "Anything else?", "type": "long-text", "options": []},
]


def _answers(q1, q2, q3=None):
    answers = [
        SurveyAnswer(question_id="q1", answer=[q1]),
        SurveyAnswer(question_id="q2", answer=[q2]),
    ]
    if q3 is not None:
        answers.append(SurveyAnswer(question_id="q3", other_text=q3))
    return answers


@pytest.fixture
def survey_service(db_session):
    return SurveyService(db_session)


@pytest.fixture
def published_survey(survey_service, make_user):
    admin = make_user(role="admin")
    survey = survey_service.create_survey(
        admin.id,
        SurveyCreateRequest(
            title="Tea habits",
            points_awarded=15,
            end_date=now_utc() + timedelta(days=3),
            questions=QUESTIONS,
        ),
    )
    return survey_service.publish_survey(survey.id)


class TestDetectFraud:
    def test_consistent_answers(self):
        assert detect_fraud(QUESTIONS, _answers("Daily", "More than 7")) is None

    def test_mismatched_groups(self):
        assert detect_fraud(QUESTIONS, _answers("Daily", "One or two")) == FRAUD_REASON

    def test_needs_two_anti_fraud_questions(self):
        single = [dict(QUESTIONS[0]), dict(QUESTIONS[1], is_anti_fraud=False)]
        assert detect_fraud(single, _answers("Daily", "One or two")) is None


class TestSurveyService:
    """설문 제출 테스트"""

    def test_submission_awards_points(self, survey_service, make_user, published_survey, db_session):
        user = make_user()

        result = survey_service.submit_survey(
            published_survey.id,
            user.id,
            SurveySubmitRequest(answers=_answers("Rarely", "One or two", "Green")),
        )

        assert result.is_fraudulent is False
        assert result.points_awarded == 15
        assert LedgerService(db_session).get_balance(user.id).balance == 15

    def test_fraudulent_submission_is_kept_without_points(self, survey_service, make_user, published_survey, db_session):
        user = make_user()

        result = survey_service.submit_survey(
            published_survey.id,
            user.id,
            SurveySubmitRequest(answers=_answers("Daily", "One or two")),
        )

        assert result.is_fraudulent is True
        assert result.points_awarded == 0
        assert LedgerService(db_session).get_balance(user.id).balance == 0

    def test_one_submission_per_user(self, survey_service, make_user, published_survey):
        user = make_user()
        request = SurveySubmitRequest(answers=_answers("Daily", "More than 7"))
        survey_service.submit_survey(published_survey.id, user.id, request)

        with pytest.raises(AlreadyProcessedError):
            survey_service.submit_survey(published_survey.id, user.id, request)

    def test_required_questions(self, survey_service, make_user, published_survey):
        user = make_user()
        request = SurveySubmitRequest(answers=[SurveyAnswer(question_id="q1", answer=["Daily"])])
        with pytest.raises(ValidationError):
            survey_service.submit_survey(published_survey.id, user.id, request)

    def test_draft_survey_is_not_available(self, survey_service, make_user):
        admin = make_user(role="admin")
        draft = survey_service.create_survey(
            admin.id, SurveyCreateRequest(title="Draft", questions=QUESTIONS[2:])
        )
        with pytest.raises(NotFoundError):
            survey_service.get_survey(draft.id)

    def test_public_view_hides_anti_fraud_groups(self, survey_service, published_survey):
        survey = survey_service.get_survey(published_survey.id)
        assert all(not q.is_anti_fraud for q in survey.questions)
        assert all(
            o.anti_fraud_group_id is None for q in survey.questions for o in q.options
        )

    def test_single_anti_fraud_question_is_rejected(self):
        with pytest.raises(ValueError):
            SurveyCreateRequest(title="Bad", questions=QUESTIONS[:1])
