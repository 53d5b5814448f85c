from enum import Enum

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)

from loyaltyapi.models.base import BaseModel, BigIntPK


class ContestStatus(str, Enum):
    ACTIVE = "active"
    FINISHED = "finished"


class Contest(BaseModel):
    """기간 한정 퀴즈. 참여 시 points_per_answer 차감, 정답 공개 시 정답자에게 reward_points 지급"""

    __tablename__ = "contests"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    points_per_answer = Column(Integer, nullable=False, default=0)
    reward_points = Column(Integer, nullable=False, default=0)
    answer = Column(Text, nullable=True)
    is_answer_published = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default=ContestStatus.ACTIVE.value)
    author_id = Column(BigInteger, ForeignKey("users.id"), nullable=True)


class ContestSubmission(BaseModel):
    """사용자 답안. 한 사용자가 같은 대회에 여러 번 제출할 수 있음"""

    __tablename__ = "contest_submissions"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    contest_id = Column(
        BigInteger, ForeignKey("contests.id"), nullable=False, index=True
    )
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    answer = Column(Text, nullable=False)
    points_spent = Column(Integer, nullable=False, default=0)
    is_correct = Column(Boolean, nullable=True)
    reward_points_earned = Column(Integer, nullable=False, default=0)
