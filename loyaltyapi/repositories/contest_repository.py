from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from loyaltyapi.models.contest import Contest as ContestModel
from loyaltyapi.models.contest import ContestStatus
from loyaltyapi.models.contest import ContestSubmission as ContestSubmissionModel
from loyaltyapi.repositories.base import BaseRepository
from loyaltyapi.schemas.contest import ContestResponse, ContestSubmissionResponse


class ContestRepository(BaseRepository[ContestModel, ContestResponse]):
    """대회 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(ContestModel, ContestResponse, db)

    def lock_for_publish(self, contest_id: int, answer: str) -> bool:
        """
        정답 공개 잠금 - is_answer_published 가 false 인 경우에만 true 로 전환

        Returns:
            bool: 잠금 획득 여부 (False = 이미 공개됨)
        """
        stmt = (
            update(self.model_class)
            .where(self.model_class.id == contest_id)
            .where(self.model_class.is_answer_published.is_(False))
            .values(
                is_answer_published=True,
                status=ContestStatus.FINISHED.value,
                answer=answer,
            )
            .execution_options(synchronize_session="fetch")
        )
        return self.db.execute(stmt).rowcount == 1

    def list_active(self, now: datetime) -> List[ContestModel]:
        return (
            self.db.query(self.model_class)
            .filter(
                self.model_class.status == ContestStatus.ACTIVE.value,
                self.model_class.is_answer_published.is_(False),
                self.model_class.start_date <= now,
                self.model_class.end_date >= now,
            )
            .order_by(self.model_class.end_date)
            .all()
        )


class ContestSubmissionRepository(
    BaseRepository[ContestSubmissionModel, ContestSubmissionResponse]
):
    def __init__(self, db: Session):
        super().__init__(ContestSubmissionModel, ContestSubmissionResponse, db)

    def get_for_contest(self, contest_id: int) -> List[ContestSubmissionModel]:
        return (
            self.db.query(self.model_class)
            .filter(self.model_class.contest_id == contest_id)
            .order_by(self.model_class.id)
            .all()
        )

    def get_for_user(
        self, user_id: int, contest_id: Optional[int] = None
    ) -> List[ContestSubmissionResponse]:
        query = self.db.query(self.model_class).filter(
            self.model_class.user_id == user_id
        )
        if contest_id is not None:
            query = query.filter(self.model_class.contest_id == contest_id)
        return [self._to_schema(row) for row in query.order_by(self.model_class.id.desc())]

    def get_stats(self, contest_id: int) -> Dict[str, int]:
        rows = (
            self.db.query(self.model_class.is_correct, func.count(self.model_class.id))
            .filter(self.model_class.contest_id == contest_id)
            .group_by(self.model_class.is_correct)
            .all()
        )
        counts = {is_correct: count for is_correct, count in rows}
        correct = counts.get(True, 0)
        incorrect = counts.get(False, 0)
        pending = counts.get(None, 0)
        return {
            "total": correct + incorrect + pending,
            "correct": correct,
            "incorrect": incorrect,
            "pending": pending,
        }
