"""
주문 API 라우터

주문 생성 시 쿠폰 할인, 포인트 사용, 재고 차감이 한 트랜잭션으로 처리되고
구매 확정(completed) 시 적립 포인트가 지급된다. 상태 변경 규칙은
OrderService 가 담당한다.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Path, Query

from loyaltyapi.core.auth_middleware import get_current_active_user, require_admin
from loyaltyapi.deps import get_order_service
from loyaltyapi.schemas.auth import BaseResponse
from loyaltyapi.schemas.order import (
    CancelOrderRequest,
    OrderCreateRequest,
    OrderListResponse,
    OrderStatusUpdateRequest,
    PaymentConfirmationRequest,
    PaymentStatusUpdateRequest,
)
from loyaltyapi.schemas.user import User as UserSchema
from loyaltyapi.services.order_service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


def _order_list_response(orders, total: int, limit: int, offset: int) -> BaseResponse:
    has_next = offset + len(orders) < total
    payload = OrderListResponse(orders=orders, total_count=total, has_next=has_next)
    return BaseResponse(
        success=True,
        data=payload.model_dump(),
        meta={
            "limit": limit,
            "offset": offset,
            "total_count": total,
            "has_next": has_next,
        },
    )


@router.post("", response_model=BaseResponse)
def create_order(
    request: OrderCreateRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    order_service: OrderService = Depends(get_order_service),
) -> Any:
    """주문 생성 (쿠폰/포인트 적용, 재고 차감)"""
    order = order_service.create_order(current_user.id, request)
    return BaseResponse(success=True, data=order.model_dump())


@router.get("", response_model=BaseResponse)
def list_my_orders(
    status: Optional[str] = Query(None, description="주문 상태 필터"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: UserSchema = Depends(get_current_active_user),
    order_service: OrderService = Depends(get_order_service),
) -> Any:
    orders, total = order_service.list_orders(
        user_id=current_user.id, status=status, limit=limit, offset=offset
    )
    return _order_list_response(orders, total, limit, offset)


@router.get("/{order_id}", response_model=BaseResponse)
def get_my_order(
    order_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    order_service: OrderService = Depends(get_order_service),
) -> Any:
    order = order_service.get_order(order_id, user_id=current_user.id)
    return BaseResponse(success=True, data=order.model_dump())


@router.post("/{order_id}/cancel", response_model=BaseResponse)
def cancel_my_order(
    order_id: int = Path(..., gt=0),
    request: Optional[CancelOrderRequest] = Body(None),
    current_user: UserSchema = Depends(get_current_active_user),
    order_service: OrderService = Depends(get_order_service),
) -> Any:
    """결제 확인 전 주문 취소 (사용 포인트 환불, 재고 복구)"""
    reason = request.reason if request else None
    order = order_service.cancel_order(order_id, current_user.id, reason=reason)
    return BaseResponse(success=True, data=order.model_dump())


@router.post("/{order_id}/payment-confirmation", response_model=BaseResponse)
def submit_payment_confirmation(
    request: PaymentConfirmationRequest,
    order_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    order_service: OrderService = Depends(get_order_service),
) -> Any:
    order = order_service.submit_payment_confirmation(
        order_id, current_user.id, request
    )
    return BaseResponse(success=True, data=order.model_dump())


@router.post("/{order_id}/delivered", response_model=BaseResponse)
def mark_order_delivered(
    order_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    order_service: OrderService = Depends(get_order_service),
) -> Any:
    order = order_service.mark_delivered(order_id, current_user.id)
    return BaseResponse(success=True, data=order.model_dump())


@router.post("/{order_id}/confirm", response_model=BaseResponse)
def confirm_order_delivery(
    order_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    order_service: OrderService = Depends(get_order_service),
) -> Any:
    """구매 확정 - 적립 포인트 지급"""
    order = order_service.confirm_delivery(order_id, current_user.id)
    return BaseResponse(success=True, data=order.model_dump())


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.get("/admin/all", response_model=BaseResponse)
def admin_list_orders(
    status: Optional[str] = Query(None),
    user_id: Optional[int] = Query(None, gt=0),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    _current_user: UserSchema = Depends(require_admin),
    order_service: OrderService = Depends(get_order_service),
) -> Any:
    orders, total = order_service.list_orders(
        user_id=user_id, status=status, limit=limit, offset=offset
    )
    return _order_list_response(orders, total, limit, offset)


@router.get("/admin/{order_id}", response_model=BaseResponse)
def admin_get_order(
    order_id: int = Path(..., gt=0),
    _current_user: UserSchema = Depends(require_admin),
    order_service: OrderService = Depends(get_order_service),
) -> Any:
    order = order_service.get_order(order_id)
    return BaseResponse(success=True, data=order.model_dump())


@router.put("/admin/{order_id}/status", response_model=BaseResponse)
def admin_update_order_status(
    request: OrderStatusUpdateRequest,
    order_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(require_admin),
    order_service: OrderService = Depends(get_order_service),
) -> Any:
    order = order_service.update_status(
        order_id,
        request.status,
        actor_id=current_user.id,
        admin_notes=request.admin_notes,
        reason=request.reason,
    )
    logger.info(f"Admin {current_user.id} moved order {order_id} to {request.status}")
    return BaseResponse(success=True, data=order.model_dump())


@router.put("/admin/{order_id}/payment-status", response_model=BaseResponse)
def admin_update_payment_status(
    request: PaymentStatusUpdateRequest,
    order_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(require_admin),
    order_service: OrderService = Depends(get_order_service),
) -> Any:
    order = order_service.update_payment_status(
        order_id, request.payment_status.value, admin_id=current_user.id
    )
    return BaseResponse(success=True, data=order.model_dump())
