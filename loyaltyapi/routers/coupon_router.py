import logging
from typing import Any

from fastapi import APIRouter, Depends, Query

from loyaltyapi.core.auth_middleware import get_current_active_user, require_admin
from loyaltyapi.deps import get_coupon_service
from loyaltyapi.schemas.auth import BaseResponse
from loyaltyapi.schemas.coupon import CouponCreateRequest, CouponValidateRequest
from loyaltyapi.schemas.user import User as UserSchema
from loyaltyapi.services.coupon_service import CouponService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/coupons", tags=["coupons"])


@router.post("/validate", response_model=BaseResponse)
def validate_coupon(
    request: CouponValidateRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    coupon_service: CouponService = Depends(get_coupon_service),
) -> Any:
    """장바구니 기준 쿠폰 적용 가능 여부와 할인 금액 미리보기"""
    preview = coupon_service.preview(request.code, current_user.id, request.items)
    return BaseResponse(success=True, data=preview.model_dump())


@router.post("/admin", response_model=BaseResponse)
def admin_create_coupon(
    request: CouponCreateRequest,
    current_user: UserSchema = Depends(require_admin),
    coupon_service: CouponService = Depends(get_coupon_service),
) -> Any:
    coupon = coupon_service.create_coupon(current_user.id, request)
    return BaseResponse(success=True, data=coupon.model_dump())


@router.get("/admin", response_model=BaseResponse)
def admin_list_coupons(
    active_only: bool = Query(False, description="현재 사용 가능한 쿠폰만"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    _current_user: UserSchema = Depends(require_admin),
    coupon_service: CouponService = Depends(get_coupon_service),
) -> Any:
    coupons, total = coupon_service.list_coupons(
        active_only=active_only, limit=limit, offset=offset
    )
    return BaseResponse(
        success=True,
        data={"coupons": [c.model_dump() for c in coupons]},
        meta={
            "limit": limit,
            "offset": offset,
            "total_count": total,
            "has_next": offset + limit < total,
        },
    )
