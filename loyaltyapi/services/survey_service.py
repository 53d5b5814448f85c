import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from loyaltyapi.core.exceptions import (
    AlreadyProcessedError,
    NotFoundError,
    ValidationError,
)
from loyaltyapi.database.session import transactional
from loyaltyapi.models.points import PointReason
from loyaltyapi.models.survey import Survey, SurveyStatus
from loyaltyapi.repositories.survey_repository import SurveyRepository
from loyaltyapi.schemas.survey import (
    SurveyAnswer,
    SurveyCreateRequest,
    SurveyResponse,
    SurveySubmitRequest,
    SurveySubmitResponse,
)
from loyaltyapi.services.ledger_service import LedgerService
from loyaltyapi.utils.timezone_utils import as_utc, now_utc

logger = logging.getLogger(__name__)

FRAUD_REASON = "Mismatch in answers for anti-fraud questions."


def detect_fraud(questions: List[dict], answers: List[SurveyAnswer]) -> Optional[str]:
    """
    교차 검증 문항(2개 이상)에서 선택한 보기들의 anti_fraud_group_id 가 모두 같은지 확인

    Returns:
        str | None: 불일치 사유 (정상이면 None)
    """
    anti_fraud = [q for q in questions if q.get("is_anti_fraud")]
    if len(anti_fraud) < 2:
        return None

    by_question: Dict[str, SurveyAnswer] = {a.question_id: a for a in answers}
    group_ids = []
    for question in anti_fraud:
        answer = by_question.get(question["id"])
        if answer is None:
            continue
        for chosen in answer.answer:
            option = next(
                (o for o in question.get("options", []) if o.get("text") == chosen),
                None,
            )
            if option and option.get("anti_fraud_group_id"):
                group_ids.append(option["anti_fraud_group_id"])

    if group_ids and any(gid != group_ids[0] for gid in group_ids):
        return FRAUD_REASON
    return None


class SurveyService:
    def __init__(self, db: Session):
        self.db = db
        self.survey_repo = SurveyRepository(db)
        self.ledger = LedgerService(db)

    def submit_survey(
        self, survey_id: int, user_id: int, request: SurveySubmitRequest
    ) -> SurveySubmitResponse:
        """설문 제출 - 교차 검증을 통과하면 points_awarded 지급 (제출과 같은 트랜잭션)"""
        with transactional(self.db):
            survey = self._get_active_survey(survey_id)
            if self.survey_repo.find_submission(survey_id, user_id) is not None:
                raise AlreadyProcessedError("You have already submitted this survey")

            questions = survey.questions or []
            self._validate_answers(questions, request.answers)
            fraud_reason = detect_fraud(questions, request.answers)
            points = 0 if fraud_reason else (survey.points_awarded or 0)

            try:
                with self.db.begin_nested():
                    submission = self.survey_repo.add_submission(
                        survey_id=survey_id,
                        user_id=user_id,
                        answers=self._archive_answers(questions, request.answers),
                        is_fraudulent=fraud_reason is not None,
                        fraud_reason=fraud_reason,
                        points_awarded=points,
                    )
            except IntegrityError as e:
                raise AlreadyProcessedError(
                    "You have already submitted this survey"
                ) from e

            if points > 0:
                self.ledger.apply_entry(
                    user_id=user_id,
                    amount=points,
                    reason=PointReason.SURVEY_COMPLETION,
                    idempotency_key=f"survey:{survey_id}:user:{user_id}",
                    notes=f"Survey completion: {survey.title}",
                )

        if fraud_reason:
            logger.warning(
                f"Survey {survey_id} submission by user {user_id} flagged: {fraud_reason}"
            )
        return SurveySubmitResponse(
            submission_id=submission.id,
            is_fraudulent=fraud_reason is not None,
            fraud_reason=fraud_reason,
            points_awarded=points,
        )

    def create_survey(self, admin_id: int, request: SurveyCreateRequest) -> SurveyResponse:
        with transactional(self.db):
            survey = self.survey_repo.add(
                title=request.title,
                description=request.description,
                status=SurveyStatus.DRAFT.value,
                points_awarded=request.points_awarded,
                end_date=as_utc(request.end_date),
                questions=[q.model_dump(mode="json") for q in request.questions],
                created_by=admin_id,
            )
        logger.info(f"Survey {survey.id} created by admin {admin_id}")
        return self.survey_repo._to_schema(survey)

    def publish_survey(self, survey_id: int) -> SurveyResponse:
        with transactional(self.db):
            survey = self.survey_repo.get_model(survey_id)
            if survey is None:
                raise NotFoundError("Survey not found", details={"survey_id": survey_id})
            survey.status = SurveyStatus.PUBLISHED.value
        return self.survey_repo._to_schema(survey)

    def list_published_surveys(self) -> List[SurveyResponse]:
        now = now_utc()
        return [
            self._public_view(s)
            for s in self.survey_repo.list_published()
            if s.end_date is None or as_utc(s.end_date) > now
        ]

    def get_survey(self, survey_id: int) -> SurveyResponse:
        return self._public_view(self._get_active_survey(survey_id))

    def _get_active_survey(self, survey_id: int) -> Survey:
        survey = self.survey_repo.get_model(survey_id)
        ended = (
            survey is not None
            and survey.end_date is not None
            and as_utc(survey.end_date) <= now_utc()
        )
        if survey is None or survey.status != SurveyStatus.PUBLISHED.value or ended:
            raise NotFoundError(
                "Survey not found or is no longer active",
                details={"survey_id": survey_id},
            )
        return survey

    def _public_view(self, survey: Survey) -> SurveyResponse:
        """교차 검증 표시와 그룹 ID 를 숨긴 응답"""
        response = self.survey_repo._to_schema(survey)
        for question in response.questions:
            question.is_anti_fraud = False
            for option in question.options:
                option.anti_fraud_group_id = None
        return response

    @staticmethod
    def _validate_answers(questions: List[dict], answers: List[SurveyAnswer]) -> None:
        known = {q["id"] for q in questions}
        unknown = [a.question_id for a in answers if a.question_id not in known]
        if unknown:
            raise ValidationError("Unknown question ids", details={"question_ids": unknown})

        answered = {
            a.question_id for a in answers if a.answer or (a.other_text or "").strip()
        }
        missing = [q["id"] for q in questions if q.get("is_required") and q["id"] not in answered]
        if missing:
            raise ValidationError(
                "Required questions are not answered",
                details={"question_ids": missing},
            )

    @staticmethod
    def _archive_answers(
        questions: List[dict], answers: List[SurveyAnswer]
    ) -> List[dict]:
        by_id: Dict[str, dict] = {q["id"]: q for q in questions}
        archived = []
        for answer in answers:
            question = by_id[answer.question_id]
            archived.append(
                {
                    "question_id": answer.question_id,
                    "question_text": question.get("text"),
                    "question_type": question.get("type"),
                    "answer": list(answer.answer),
                    "other_text": answer.other_text,
                }
            )
        return archived
