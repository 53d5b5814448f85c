from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from loyaltyapi.models.survey import Survey as SurveyModel
from loyaltyapi.models.survey import SurveyStatus, SurveySubmission
from loyaltyapi.repositories.base import BaseRepository
from loyaltyapi.schemas.survey import SurveyResponse


class SurveyRepository(BaseRepository[SurveyModel, SurveyResponse]):
    def __init__(self, db: Session):
        super().__init__(SurveyModel, SurveyResponse, db)

    def list_published(self) -> List[SurveyModel]:
        return (
            self.db.query(self.model_class)
            .filter(self.model_class.status == SurveyStatus.PUBLISHED.value)
            .order_by(desc(self.model_class.id))
            .all()
        )

    def find_submission(self, survey_id: int, user_id: int) -> Optional[SurveySubmission]:
        return (
            self.db.query(SurveySubmission)
            .filter(
                SurveySubmission.survey_id == survey_id,
                SurveySubmission.user_id == user_id,
            )
            .first()
        )

    def add_submission(self, **fields) -> SurveySubmission:
        submission = SurveySubmission(**fields)
        self.db.add(submission)
        self.db.flush()
        return submission
