from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from loyaltyapi.models.base import BaseModel, BigIntPK


class SurveyStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CLOSED = "closed"


class Survey(BaseModel):
    """
    설문. questions 는 아래 형태의 JSON 리스트:
    [{"id", "text", "type", "is_required", "is_anti_fraud",
      "options": [{"text", "anti_fraud_group_id"}]}]
    """

    __tablename__ = "surveys"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default=SurveyStatus.DRAFT.value)
    points_awarded = Column(Integer, nullable=False, default=0)
    end_date = Column(DateTime(timezone=True), nullable=True)
    questions = Column(JSON, nullable=False, default=list)
    created_by = Column(BigInteger, ForeignKey("users.id"), nullable=True)


class SurveySubmission(BaseModel):
    __tablename__ = "survey_submissions"
    __table_args__ = (
        UniqueConstraint("survey_id", "user_id", name="uq_survey_submissions_user"),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    survey_id = Column(BigInteger, ForeignKey("surveys.id"), nullable=False, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    answers = Column(JSON, nullable=False, default=list)
    is_fraudulent = Column(Boolean, nullable=False, default=False)
    fraud_reason = Column(Text, nullable=True)
    points_awarded = Column(Integer, nullable=False, default=0)
