from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from loyaltyapi.models.coupon import DiscountType
from loyaltyapi.schemas.order import OrderItemRequest


class CouponCreateRequest(BaseModel):
    code: str = Field(..., min_length=3, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: int = Field(0, ge=0)
    usage_limit: Optional[int] = Field(None, ge=1)
    minimum_order_amount: int = Field(0, ge=0)
    minimum_quantity: int = Field(0, ge=0)
    applicable_products: List[int] = []
    excluded_products: List[int] = []
    applicable_users: List[int] = []
    valid_from: datetime
    valid_until: datetime
    is_active: bool = True

    @model_validator(mode="after")
    def check_window_and_value(self):
        if self.valid_until <= self.valid_from:
            raise ValueError("valid_until must be after valid_from")
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("percentage discount cannot exceed 100")
        return self


class CouponResponse(BaseModel):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    discount_type: str
    discount_value: int
    usage_limit: Optional[int] = None
    used_count: int
    minimum_order_amount: int
    minimum_quantity: int
    applicable_products: List[int] = []
    excluded_products: List[int] = []
    applicable_users: List[int] = []
    valid_from: datetime
    valid_until: datetime
    is_active: bool
    total_discount_given: int
    total_orders_affected: int

    class Config:
        from_attributes = True


class CouponValidateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    items: List[OrderItemRequest] = Field(..., min_length=1)


class CouponPreviewResponse(BaseModel):
    code: str
    discount_type: str
    subtotal: int
    discount_amount: int
    free_shipping: bool
