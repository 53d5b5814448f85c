import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from loyaltyapi.core.exceptions import (
    AlreadyProcessedError,
    ContestClosedError,
    NotFoundError,
    ValidationError,
)
from loyaltyapi.database.session import transactional
from loyaltyapi.models.contest import Contest, ContestStatus
from loyaltyapi.models.points import PointReason
from loyaltyapi.repositories.contest_repository import (
    ContestRepository,
    ContestSubmissionRepository,
)
from loyaltyapi.repositories.user_repository import UserRepository
from loyaltyapi.schemas.contest import (
    ContestCreateRequest,
    ContestResponse,
    ContestSubmissionResponse,
    ContestSubmitResponse,
    PublishAnswerResponse,
    SubmissionListResponse,
    SubmissionStats,
)
from loyaltyapi.services.ledger_service import LedgerService
from loyaltyapi.utils.timezone_utils import as_utc, now_utc

logger = logging.getLogger(__name__)

SUBMISSION_FILTERS = {"correct": True, "incorrect": False, "pending": None}


def normalize_answer(text: str) -> str:
    return (text or "").strip().lower()


class ContestService:
    """대회 참여(참가비 차감)와 정답 공개(정답자 일괄 보상)"""

    def __init__(self, db: Session):
        self.db = db
        self.contest_repo = ContestRepository(db)
        self.submission_repo = ContestSubmissionRepository(db)
        self.user_repo = UserRepository(db)
        self.ledger = LedgerService(db)

    def submit_answer(
        self, contest_id: int, user_id: int, answer_text: str
    ) -> ContestSubmitResponse:
        """답안 제출 - 제출 기록과 참가비 차감을 한 트랜잭션으로 처리

        Raises:
            ValidationError: 빈 답안
            NotFoundError: 대회 없음
            ContestClosedError: 기간 외 또는 정답 공개됨
            InsufficientBalanceError: 참가비 부족 (제출 기록도 남지 않음)
        """
        answer = (answer_text or "").strip()
        if not answer:
            raise ValidationError("Answer cannot be empty")

        with transactional(self.db):
            # 정답 공개와 경합하지 않도록 대회 행을 잠금
            contest = self.contest_repo.get_model(contest_id, for_update=True)
            if contest is None:
                raise NotFoundError("Contest not found", details={"contest_id": contest_id})
            self._ensure_open(contest)

            cost = contest.points_per_answer or 0
            submission = self.submission_repo.add(
                contest_id=contest.id,
                user_id=user_id,
                answer=answer,
                points_spent=cost,
                reward_points_earned=0,
            )
            if cost > 0:
                result = self.ledger.apply_entry(
                    user_id=user_id,
                    amount=-cost,
                    reason=PointReason.CONTEST_PARTICIPATION,
                    idempotency_key=f"contest-submission:{submission.id}:entry",
                    notes=f"Contest entry: {contest.title}",
                )
                new_balance = result.new_balance
            else:
                new_balance = self.user_repo.get_points(user_id)
                if new_balance is None:
                    raise NotFoundError("User not found", details={"user_id": user_id})

        logger.info(
            f"User {user_id} submitted answer to contest {contest_id} (submission {submission.id})"
        )
        return ContestSubmitResponse(
            submission=self.submission_repo._to_schema(submission),
            new_balance=new_balance,
        )

    def publish_answer(
        self, contest_id: int, correct_answer: str, admin_id: int
    ) -> PublishAnswerResponse:
        """정답 공개 및 일괄 보상

        잠금(is_answer_published), 채점, 보상 지급이 하나의 트랜잭션이다.
        중간에 실패하면 잠금까지 함께 롤백되어 재실행 시 전체가 다시 처리되며,
        보상 키(contest-submission:<id>:win)가 중복 지급을 막는다.
        """
        answer = (correct_answer or "").strip()
        if not answer:
            raise ValidationError("Correct answer cannot be empty")

        with transactional(self.db):
            contest = self.contest_repo.get_model(contest_id)
            if contest is None:
                raise NotFoundError("Contest not found", details={"contest_id": contest_id})
            if not self.contest_repo.lock_for_publish(contest_id, answer):
                raise AlreadyProcessedError(
                    "Contest answer already published",
                    details={"contest_id": contest_id},
                )

            expected = normalize_answer(answer)
            reward = contest.reward_points or 0
            submissions = self.submission_repo.get_for_contest(contest_id)
            correct_count = 0
            total_awarded = 0
            for submission in submissions:
                submission.is_correct = normalize_answer(submission.answer) == expected
                if submission.is_correct:
                    correct_count += 1
                    if reward > 0:
                        self.ledger.apply_entry(
                            user_id=submission.user_id,
                            amount=reward,
                            reason=PointReason.CONTEST_WIN,
                            idempotency_key=f"contest-submission:{submission.id}:win",
                            admin_id=admin_id,
                            notes=f"Contest win: {contest.title}",
                        )
                        total_awarded += reward
                    submission.reward_points_earned = reward
                else:
                    submission.reward_points_earned = 0
            self.db.flush()

        logger.info(
            f"Contest {contest_id} published by admin {admin_id}: "
            f"{correct_count}/{len(submissions)} correct, {total_awarded} points awarded"
        )
        return PublishAnswerResponse(
            contest_id=contest_id,
            total_submissions=len(submissions),
            correct_count=correct_count,
            total_points_awarded=total_awarded,
        )

    def create_contest(
        self, admin_id: int, request: ContestCreateRequest
    ) -> ContestResponse:
        with transactional(self.db):
            contest = self.contest_repo.add(
                title=request.title,
                description=request.description,
                start_date=as_utc(request.start_date),
                end_date=as_utc(request.end_date),
                points_per_answer=request.points_per_answer,
                reward_points=request.reward_points,
                is_answer_published=False,
                status=ContestStatus.ACTIVE.value,
                author_id=admin_id,
            )
        logger.info(f"Contest {contest.id} created by admin {admin_id}")
        return self._to_response(contest)

    def list_active_contests(self) -> List[ContestResponse]:
        return [
            self._to_response(c) for c in self.contest_repo.list_active(now_utc())
        ]

    def get_contest(self, contest_id: int) -> ContestResponse:
        contest = self.contest_repo.get_model(contest_id)
        if contest is None:
            raise NotFoundError("Contest not found", details={"contest_id": contest_id})
        return self._to_response(contest)

    def list_submissions(
        self, contest_id: int, result_filter: Optional[str] = None
    ) -> SubmissionListResponse:
        """관리자용 제출 목록 + 정답/오답 통계"""
        if result_filter is not None and result_filter not in SUBMISSION_FILTERS:
            raise ValidationError(
                "Unknown submission filter", details={"filter": result_filter}
            )
        self.get_contest(contest_id)

        submissions = self.submission_repo.get_for_contest(contest_id)
        if result_filter is not None:
            wanted = SUBMISSION_FILTERS[result_filter]
            submissions = [s for s in submissions if s.is_correct is wanted]
        return SubmissionListResponse(
            submissions=[self.submission_repo._to_schema(s) for s in submissions],
            stats=SubmissionStats(**self.submission_repo.get_stats(contest_id)),
        )

    def list_user_submissions(
        self, user_id: int, contest_id: Optional[int] = None
    ) -> List[ContestSubmissionResponse]:
        return self.submission_repo.get_for_user(user_id, contest_id)

    @staticmethod
    def _ensure_open(contest: Contest) -> None:
        now = now_utc()
        if contest.is_answer_published or contest.status != ContestStatus.ACTIVE.value:
            raise ContestClosedError(
                "Contest answer has already been published",
                details={"contest_id": contest.id},
            )
        if not as_utc(contest.start_date) <= now <= as_utc(contest.end_date):
            raise ContestClosedError(
                "Contest is not accepting submissions",
                details={"contest_id": contest.id},
            )

    @staticmethod
    def _to_response(contest: Contest) -> ContestResponse:
        response = ContestResponse.model_validate(contest)
        if not contest.is_answer_published:
            # 공개 전 정답 노출 금지
            response.answer = None
        return response
