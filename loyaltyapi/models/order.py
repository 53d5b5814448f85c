"""
주문 데이터 모델

주문은 상태 머신을 따라 이동하며, 일부 전이에서 포인트 정산이 발생한다.
- completed 진입: points_earned 적립
- completed -> cancelled: 적립분 회수
- cancelled 진입: points_used 환불 (points_refunded 로 중복 방지)
"""

from enum import Enum

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from loyaltyapi.models.base import BaseModel, BigIntPK


class OrderStatus(str, Enum):
    PENDING = "pending"
    WAITING_PAYMENT = "waiting_payment"
    WAITING_CONFIRMATION = "waiting_confirmation"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    WAITING_CONFIRMATION = "waiting_confirmation"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    COD = "cod"


# 결제 완료(paid) 상태여야만 진입 가능한 주문 상태
PAID_ONLY_STATUSES = {
    OrderStatus.PROCESSING.value,
    OrderStatus.SHIPPED.value,
    OrderStatus.DELIVERED.value,
    OrderStatus.COMPLETED.value,
}

# 사용자가 직접 취소할 수 있는 상태
USER_CANCELLABLE_STATUSES = {
    OrderStatus.PENDING.value,
    OrderStatus.WAITING_PAYMENT.value,
    OrderStatus.WAITING_CONFIRMATION.value,
}


class Order(BaseModel):
    __tablename__ = "orders"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_number = Column(String(32), unique=True, nullable=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)

    status = Column(String(32), default=OrderStatus.PENDING.value, nullable=False)
    payment_status = Column(
        String(32), default=PaymentStatus.PENDING.value, nullable=False
    )
    payment_method = Column(
        String(32), default=PaymentMethod.BANK_TRANSFER.value, nullable=False
    )

    # 금액 (통화 최소 단위 정수)
    subtotal = Column(Integer, nullable=False, default=0)
    discount_amount = Column(Integer, nullable=False, default=0)
    shipping_cost = Column(Integer, nullable=False, default=0)
    total = Column(Integer, nullable=False, default=0)

    coupon_id = Column(BigInteger, ForeignKey("coupons.id"), nullable=True)
    coupon_code = Column(String(64), nullable=True)

    # 포인트
    points_used = Column(Integer, nullable=False, default=0)
    points_earned = Column(Integer, nullable=False, default=0)
    points_refunded = Column(Boolean, nullable=False, default=False)

    shipping_address = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)

    # 계좌이체 입금 확인 정보 (입금자명, 거래 참조 번호 등)
    payment_confirmation = Column(JSON, nullable=True)
    payment_confirmed_at = Column(DateTime(timezone=True), nullable=True)

    shipped_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(BigInteger, nullable=True)
    cancel_reason = Column(Text, nullable=True)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    def __repr__(self):
        return f"<Order(id={self.id}, user_id={self.user_id}, status={self.status})>"


class OrderItem(BaseModel):
    __tablename__ = "order_items"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(BigInteger, ForeignKey("products.id"), nullable=False)

    # 생성 시점 스냅샷 - 이후 상품 정보가 바뀌어도 정산에는 영향 없음
    product_name = Column(String(255), nullable=False)
    unit_price = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)
    points_reward = Column(Integer, nullable=False, default=0)

    order = relationship("Order", back_populates="items")

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity

    @property
    def line_points(self) -> int:
        return self.points_reward * self.quantity
