"""
포인트 시스템 데이터 모델

모든 포인트 변동은 point_transactions 원장에 한 줄씩 기록된다.
원장 레코드는 불변(append-only)이며, 취소는 원본을 수정/삭제하지 않고
부호가 반대인 보상(reversal) 레코드를 추가하는 방식으로 표현한다.
"""

from enum import Enum
from typing import Optional, Union

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from loyaltyapi.models.base import Base, BigIntPK

REVERSAL_SUFFIX = "-reversal"


class PointReason(str, Enum):
    """포인트 변동 사유 (닫힌 집합)"""

    CHECK_IN = "check-in"
    REFERRAL = "referral"
    FEEDBACK = "feedback"
    PREDICTION_WIN = "prediction-win"
    ADMIN_GRANT = "admin-grant"
    STREAK_BONUS = "streak-bonus"
    SURVEY_COMPLETION = "survey-completion"
    ORDER_COMPLETION = "order-completion"
    VOTE = "vote"
    VOTE_REMOVAL = "vote-removal"
    CONTEST_PARTICIPATION = "contest-participation"
    CONTEST_WIN = "contest-win"
    REVIEW_REWARD = "review-reward"
    ORDER_POINTS_REDEMPTION = "order-points-redemption"
    ORDER_POINTS_REFUND = "order-points-refund"

    @classmethod
    def is_valid(cls, reason: Union[str, "PointReason"]) -> bool:
        """기본 사유 또는 `<사유>-reversal` 형태인지 확인"""
        value = reason.value if isinstance(reason, cls) else str(reason)
        if value.endswith(REVERSAL_SUFFIX):
            value = value[: -len(REVERSAL_SUFFIX)]
        return value in cls._value2member_map_

    @classmethod
    def reversal_of(cls, reason: Union[str, "PointReason"]) -> str:
        value = reason.value if isinstance(reason, cls) else str(reason)
        return f"{value}{REVERSAL_SUFFIX}"

    @staticmethod
    def is_reversal(reason: Optional[str]) -> bool:
        return bool(reason) and str(reason).endswith(REVERSAL_SUFFIX)


class PointTransaction(Base):
    """
    포인트 원장 테이블

    - idempotency_key 는 유니크: 하나의 트리거 이벤트는 최대 한 번만 잔액을 바꾼다
    - balance_after 는 기록 시점의 잔액 스냅샷 (감사/정합성 검증용)
    - reversal_of_id 는 보상 레코드가 되돌리는 원본 레코드
    """

    __tablename__ = "point_transactions"
    __table_args__ = (
        CheckConstraint("amount <> 0", name="ck_point_transactions_amount_non_zero"),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    admin_id = Column(BigInteger, ForeignKey("users.id"), nullable=True)

    # 양수 = 적립, 음수 = 차감
    amount = Column(BigInteger, nullable=False)
    reason = Column(String(64), nullable=False, index=True)
    idempotency_key = Column(String(255), nullable=False, unique=True, index=True)
    notes = Column(Text, nullable=True)
    balance_after = Column(BigInteger, nullable=False)

    # 하나의 원본은 최대 한 번만 되돌릴 수 있음 (NULL 은 중복 허용)
    reversal_of_id = Column(
        BigInteger, ForeignKey("point_transactions.id"), nullable=True, unique=True
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    reversal_of = relationship("PointTransaction", remote_side=[id])

    def __repr__(self):
        return (
            f"<PointTransaction(id={self.id}, user_id={self.user_id}, "
            f"amount={self.amount}, reason={self.reason})>"
        )
