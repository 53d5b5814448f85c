from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from loyaltyapi.models.base import BaseModel, BigIntPK


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FREE_SHIPPING = "free_shipping"


class Coupon(BaseModel):
    __tablename__ = "coupons"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    discount_type: Mapped[str] = mapped_column(String(32), nullable=False)
    discount_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    usage_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    used_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    minimum_order_amount: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    minimum_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # 빈 리스트 = 제한 없음
    applicable_products: Mapped[List[int]] = mapped_column(JSON, default=list)
    excluded_products: Mapped[List[int]] = mapped_column(JSON, default=list)
    applicable_users: Mapped[List[int]] = mapped_column(JSON, default=list)

    valid_from: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    valid_until: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    # 사용 통계 - 주문 생성 트랜잭션 안에서 함께 갱신됨
    total_discount_given: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    total_orders_affected: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )

    def __repr__(self):
        return f"<Coupon(id={self.id}, code={self.code}, type={self.discount_type})>"
