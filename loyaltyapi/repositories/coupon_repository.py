from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import desc, or_, update
from sqlalchemy.orm import Session

from loyaltyapi.models.coupon import Coupon as CouponModel
from loyaltyapi.repositories.base import BaseRepository
from loyaltyapi.schemas.coupon import CouponResponse
from loyaltyapi.utils.timezone_utils import now_utc


class CouponRepository(BaseRepository[CouponModel, CouponResponse]):
    def __init__(self, db: Session):
        super().__init__(CouponModel, CouponResponse, db)

    def get_by_code(self, code: str) -> Optional[CouponModel]:
        return (
            self.db.query(self.model_class)
            .filter(self.model_class.code == code.strip().upper())
            .first()
        )

    def record_usage(self, coupon_id: int, discount: int) -> bool:
        """사용 횟수/통계를 한 번의 조건부 UPDATE 로 갱신 (usage_limit 초과 시 False)"""
        stmt = (
            update(self.model_class)
            .where(self.model_class.id == coupon_id)
            .where(
                or_(
                    self.model_class.usage_limit.is_(None),
                    self.model_class.used_count < self.model_class.usage_limit,
                )
            )
            .values(
                used_count=self.model_class.used_count + 1,
                total_discount_given=self.model_class.total_discount_given + discount,
                total_orders_affected=self.model_class.total_orders_affected + 1,
            )
            .execution_options(synchronize_session="fetch")
        )
        return self.db.execute(stmt).rowcount == 1

    def list_coupons(
        self,
        active_only: bool = False,
        now: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[CouponResponse], int]:
        """active_only 이면 활성 + 유효기간 안의 쿠폰만 (카운트와 페이지 모두 같은 조건)"""
        query = self.db.query(self.model_class)
        if active_only:
            now = now or now_utc()
            query = query.filter(
                self.model_class.is_active.is_(True),
                self.model_class.valid_from <= now,
                self.model_class.valid_until >= now,
            )
        total = query.count()
        rows = query.order_by(desc(self.model_class.id)).offset(offset).limit(limit).all()
        return [self._to_schema(row) for row in rows], total
