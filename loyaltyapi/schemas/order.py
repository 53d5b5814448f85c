from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from loyaltyapi.models.order import PaymentMethod, PaymentStatus


class OrderItemRequest(BaseModel):
    product_id: int = Field(..., gt=0, description="상품 ID")
    quantity: int = Field(..., gt=0, le=1000, description="수량")


class OrderCreateRequest(BaseModel):
    """주문 생성 요청"""

    items: List[OrderItemRequest] = Field(..., min_length=1, description="주문 상품")
    payment_method: PaymentMethod = Field(
        PaymentMethod.BANK_TRANSFER, description="결제 수단"
    )
    coupon_code: Optional[str] = Field(None, max_length=64, description="쿠폰 코드")
    use_points: int = Field(0, ge=0, description="사용할 포인트")
    shipping_address: Optional[Dict[str, Any]] = Field(None, description="배송지")
    notes: Optional[str] = Field(None, max_length=1000)


class OrderItemResponse(BaseModel):
    id: int
    product_id: int
    product_name: str
    unit_price: int
    quantity: int
    points_reward: int

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: int
    order_number: Optional[str] = None
    user_id: int
    status: str
    payment_status: str
    payment_method: str
    subtotal: int
    discount_amount: int
    shipping_cost: int
    total: int
    coupon_code: Optional[str] = None
    points_used: int
    points_earned: int
    points_refunded: bool
    shipping_address: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    admin_notes: Optional[str] = None
    payment_confirmation: Optional[Dict[str, Any]] = None
    payment_confirmed_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[int] = None
    cancel_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []

    class Config:
        from_attributes = True


class OrderListResponse(BaseModel):
    orders: List[OrderResponse]
    total_count: int
    has_next: bool


class OrderStatusUpdateRequest(BaseModel):
    """관리자 상태 변경 요청 (알 수 없는 상태값은 서비스에서 400 처리)"""

    status: str = Field(..., min_length=1, max_length=32)
    admin_notes: Optional[str] = Field(None, max_length=1000)
    reason: Optional[str] = Field(None, max_length=500, description="취소 사유")


class PaymentStatusUpdateRequest(BaseModel):
    payment_status: PaymentStatus


class PaymentConfirmationRequest(BaseModel):
    """계좌이체 입금 확인 제출"""

    transfer_reference: str = Field(..., min_length=1, max_length=100)
    sender_name: Optional[str] = Field(None, max_length=100)
    note: Optional[str] = Field(None, max_length=500)


class CancelOrderRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)
