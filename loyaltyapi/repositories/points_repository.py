"""
포인트 원장 리포지토리 - 데이터베이스 접근

잔액 변경은 항상 조건부 UPDATE 한 번으로 처리한다 (read-modify-write 금지).
원장 INSERT 는 idempotency_key 유니크 제약으로 중복이 차단된다.
커밋은 하지 않으며, 호출자의 트랜잭션 안에서 flush 만 수행한다.
"""

from typing import List, Optional, Tuple

from sqlalchemy import desc, func, select, update
from sqlalchemy.orm import Session

from loyaltyapi.models.points import PointTransaction as PointTransactionModel
from loyaltyapi.models.user import User as UserModel
from loyaltyapi.repositories.base import BaseRepository
from loyaltyapi.schemas.points import PointTransactionEntry


class PointsRepository(BaseRepository[PointTransactionModel, PointTransactionEntry]):
    """포인트 원장 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(PointTransactionModel, PointTransactionEntry, db)

    def find_by_key(self, idempotency_key: str) -> Optional[PointTransactionModel]:
        return (
            self.db.query(self.model_class)
            .filter(self.model_class.idempotency_key == idempotency_key)
            .first()
        )

    def find_reversal_of(self, original_id: int) -> Optional[PointTransactionModel]:
        return (
            self.db.query(self.model_class)
            .filter(self.model_class.reversal_of_id == original_id)
            .first()
        )

    def user_exists(self, user_id: int) -> bool:
        return (
            self.db.execute(
                select(UserModel.id).where(UserModel.id == user_id)
            ).scalar_one_or_none()
            is not None
        )

    def apply_balance_delta(self, user_id: int, amount: int) -> int:
        """
        조건부 잔액 변경

        UPDATE users SET points = points + :amount
        WHERE id = :user_id AND points + :amount >= 0

        Returns:
            int: 변경된 행 수 (0 = 사용자 없음 또는 잔액 부족)
        """
        stmt = (
            update(UserModel)
            .where(UserModel.id == user_id)
            .where(UserModel.points + amount >= 0)
            .values(points=UserModel.points + amount)
            .execution_options(synchronize_session="fetch")
        )
        return self.db.execute(stmt).rowcount

    def get_user_points(self, user_id: int) -> Optional[int]:
        return self.db.execute(
            select(UserModel.points).where(UserModel.id == user_id)
        ).scalar_one_or_none()

    def insert_transaction(self, **fields) -> PointTransactionModel:
        """원장 레코드 INSERT + flush (유니크 충돌 시 IntegrityError 발생)"""
        return self.add(**fields)

    def get_user_history(
        self,
        user_id: int,
        limit: int,
        offset: int = 0,
        reason: Optional[str] = None,
    ) -> Tuple[List[PointTransactionEntry], int]:
        """최신순 원장 조회와 전체 건수"""
        query = self.db.query(self.model_class).filter(
            self.model_class.user_id == user_id
        )
        if reason:
            query = query.filter(self.model_class.reason == reason)

        total_count = query.count()
        rows = (
            query.order_by(desc(self.model_class.id)).offset(offset).limit(limit).all()
        )
        return [self._to_schema(row) for row in rows], total_count

    def get_ledger_stats(self, user_id: int) -> Tuple[int, int]:
        """(amount 합계, 레코드 수)"""
        total, count = self.db.execute(
            select(
                func.coalesce(func.sum(self.model_class.amount), 0),
                func.count(self.model_class.id),
            ).where(self.model_class.user_id == user_id)
        ).one()
        return int(total), int(count)

    def get_latest_entry(self, user_id: int) -> Optional[PointTransactionModel]:
        return (
            self.db.query(self.model_class)
            .filter(self.model_class.user_id == user_id)
            .order_by(desc(self.model_class.id))
            .first()
        )

    def get_global_totals(self) -> Tuple[int, int, int]:
        """(사용자 수, users.points 합계, 원장 amount 합계)"""
        total_users, total_balance = self.db.execute(
            select(
                func.count(UserModel.id),
                func.coalesce(func.sum(UserModel.points), 0),
            )
        ).one()
        total_ledger = self.db.execute(
            select(func.coalesce(func.sum(self.model_class.amount), 0))
        ).scalar_one()
        return int(total_users), int(total_balance), int(total_ledger)

    def find_mismatched_user_ids(self) -> List[int]:
        """users.points 와 원장 합계가 다른 사용자 ID 목록"""
        ledger_sums = (
            select(
                self.model_class.user_id.label("user_id"),
                func.sum(self.model_class.amount).label("ledger_sum"),
            )
            .group_by(self.model_class.user_id)
            .subquery()
        )
        stmt = (
            select(UserModel.id)
            .outerjoin(ledger_sums, ledger_sums.c.user_id == UserModel.id)
            .where(func.coalesce(ledger_sums.c.ledger_sum, 0) != UserModel.points)
            .order_by(UserModel.id)
        )
        return [row[0] for row in self.db.execute(stmt).all()]
