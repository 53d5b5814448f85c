import logging
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from loyaltyapi.core.exceptions import ConflictError, NotFoundError, ValidationError
from loyaltyapi.database.session import transactional
from loyaltyapi.models.coupon import Coupon, DiscountType
from loyaltyapi.repositories.coupon_repository import CouponRepository
from loyaltyapi.repositories.product_repository import ProductRepository
from loyaltyapi.schemas.coupon import (
    CouponCreateRequest,
    CouponPreviewResponse,
    CouponResponse,
)
from loyaltyapi.schemas.order import OrderItemRequest
from loyaltyapi.utils.timezone_utils import as_utc, now_utc

logger = logging.getLogger(__name__)


def compute_discount(coupon: Coupon, order_amount: int) -> int:
    """쿠폰 할인 금액 계산 (free_shipping 은 0, 배송비는 별도로 0 처리)"""
    if coupon.discount_type == DiscountType.PERCENTAGE.value:
        return order_amount * coupon.discount_value // 100
    if coupon.discount_type == DiscountType.FIXED_AMOUNT.value:
        return min(coupon.discount_value, order_amount)
    return 0


def is_valid(coupon: Coupon, now: Optional[datetime] = None) -> bool:
    now = as_utc(now or now_utc())
    return (
        bool(coupon.is_active)
        and as_utc(coupon.valid_from) <= now <= as_utc(coupon.valid_until)
        and (coupon.usage_limit is None or coupon.used_count < coupon.usage_limit)
    )


def can_be_used_by(
    coupon: Coupon,
    user_id: int,
    order_amount: int,
    order_items: Iterable,
    now: Optional[datetime] = None,
) -> bool:
    """사용자/주문 조건 확인. order_items 는 product_id, quantity 속성을 가진 객체 목록"""
    if not is_valid(coupon, now):
        return False

    items = list(order_items)
    if coupon.applicable_users and user_id not in coupon.applicable_users:
        return False
    if order_amount < (coupon.minimum_order_amount or 0):
        return False
    if sum(item.quantity for item in items) < (coupon.minimum_quantity or 0):
        return False

    product_ids = {item.product_id for item in items}
    if coupon.applicable_products and not product_ids & set(coupon.applicable_products):
        return False
    if coupon.excluded_products and product_ids & set(coupon.excluded_products):
        return False
    return True


class CouponService:
    """쿠폰 검증/할인 계산/사용 기록"""

    def __init__(self, db: Session):
        self.db = db
        self.coupon_repo = CouponRepository(db)
        self.product_repo = ProductRepository(db)

    def resolve_for_order(
        self,
        code: str,
        user_id: int,
        subtotal: int,
        items: List[OrderItemRequest],
    ) -> Tuple[Coupon, int, bool]:
        """주문에 적용할 쿠폰 확인

        Returns:
            (쿠폰, 할인 금액, 무료배송 여부)

        Raises:
            NotFoundError: 코드가 없음
            ValidationError: 유효하지 않거나 이 주문에 사용할 수 없음
        """
        coupon = self.coupon_repo.get_by_code(code)
        if coupon is None:
            raise NotFoundError("Coupon not found", details={"code": code})
        if not can_be_used_by(coupon, user_id, subtotal, items):
            raise ValidationError(
                "Coupon cannot be applied to this order", details={"code": coupon.code}
            )
        discount = compute_discount(coupon, subtotal)
        return coupon, discount, coupon.discount_type == DiscountType.FREE_SHIPPING.value

    def preview(
        self, code: str, user_id: int, items: List[OrderItemRequest]
    ) -> CouponPreviewResponse:
        """장바구니 기준 쿠폰 적용 미리보기 (DB 변경 없음)"""
        products = self.product_repo.get_many(item.product_id for item in items)
        missing = [i.product_id for i in items if i.product_id not in products]
        if missing:
            raise NotFoundError("Product not found", details={"product_ids": missing})

        subtotal = sum(products[i.product_id].price * i.quantity for i in items)
        coupon, discount, free_shipping = self.resolve_for_order(
            code, user_id, subtotal, items
        )
        return CouponPreviewResponse(
            code=coupon.code,
            discount_type=coupon.discount_type,
            subtotal=subtotal,
            discount_amount=discount,
            free_shipping=free_shipping,
        )

    def record_usage(self, coupon_id: int, discount: int) -> None:
        """주문 생성 트랜잭션 안에서 호출 (커밋하지 않음)"""
        if not self.coupon_repo.record_usage(coupon_id, discount):
            raise ValidationError(
                "Coupon usage limit reached", details={"coupon_id": coupon_id}
            )

    def create_coupon(
        self, admin_id: int, request: CouponCreateRequest
    ) -> CouponResponse:
        code = request.code.strip().upper()
        if self.coupon_repo.get_by_code(code) is not None:
            raise ConflictError("Coupon code already exists", details={"code": code})

        with transactional(self.db):
            coupon = self.coupon_repo.add(
                **request.model_dump(
                    exclude={"code", "discount_type", "valid_from", "valid_until"}
                ),
                code=code,
                discount_type=request.discount_type.value,
                valid_from=as_utc(request.valid_from),
                valid_until=as_utc(request.valid_until),
                created_by=admin_id,
            )
        logger.info(f"Coupon {code} created by admin {admin_id}")
        return self.coupon_repo._to_schema(coupon)

    def list_coupons(
        self, active_only: bool = False, limit: int = 50, offset: int = 0
    ) -> Tuple[List[CouponResponse], int]:
        return self.coupon_repo.list_coupons(
            active_only=active_only, now=now_utc(), limit=limit, offset=offset
        )
