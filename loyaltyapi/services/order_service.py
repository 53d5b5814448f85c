"""
주문 서비스 - 주문 생성과 상태 전이에 따른 포인트 정산

정산 규칙:
- completed 진입 (이전 상태가 completed 가 아닐 때만): points_earned 적립
  key = order:<id>:completion
- cancelled 진입: points_used > 0 이고 미환불이면 환불 후 points_refunded = True
  key = order:<id>:points-refund
- completed -> cancelled: 환불 다음에 적립분 회수 (order-completion-reversal)
  key = order:<id>:completion-reversal
- 취소 시 모든 라인 아이템 재고 복구

모든 전이는 transactional() 안에서 처리되어 상태 변경, 재고, 원장이 함께
커밋되거나 함께 롤백된다.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from loyaltyapi.config import settings
from loyaltyapi.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from loyaltyapi.database.session import transactional
from loyaltyapi.models.order import (
    PAID_ONLY_STATUSES,
    USER_CANCELLABLE_STATUSES,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from loyaltyapi.models.points import PointReason
from loyaltyapi.repositories.order_repository import OrderRepository
from loyaltyapi.repositories.product_repository import ProductRepository
from loyaltyapi.repositories.user_repository import UserRepository
from loyaltyapi.schemas.order import (
    OrderCreateRequest,
    OrderResponse,
    PaymentConfirmationRequest,
)
from loyaltyapi.services.coupon_service import CouponService
from loyaltyapi.services.ledger_service import LedgerService
from loyaltyapi.utils.timezone_utils import now_utc

logger = logging.getLogger(__name__)

ORDER_STATUSES = {s.value for s in OrderStatus}


def completion_key(order_id: int) -> str:
    return f"order:{order_id}:completion"


class OrderService:
    """주문 생성/상태 전이/정산"""

    def __init__(self, db: Session):
        self.db = db
        self.order_repo = OrderRepository(db)
        self.product_repo = ProductRepository(db)
        self.user_repo = UserRepository(db)
        self.ledger = LedgerService(db)
        self.coupon_service = CouponService(db)

    # ------------------------------------------------------------------
    # 생성
    # ------------------------------------------------------------------

    def create_order(self, user_id: int, request: OrderCreateRequest) -> OrderResponse:
        """주문 생성

        상품 가격/적립 포인트를 라인 아이템에 스냅샷하고, 쿠폰 사용 기록,
        재고 차감, 포인트 사용(차감)을 주문 INSERT 와 한 트랜잭션으로 처리한다.
        """
        with transactional(self.db):
            if self.user_repo.get_model(user_id) is None:
                raise NotFoundError("User not found", details={"user_id": user_id})

            products = self.product_repo.get_many(i.product_id for i in request.items)
            subtotal = 0
            points_earned = 0
            for item in request.items:
                product = products.get(item.product_id)
                if product is None or not product.is_active:
                    raise NotFoundError(
                        "Product not found", details={"product_id": item.product_id}
                    )
                if product.stock < item.quantity:
                    raise ValidationError(
                        f"Insufficient stock for {product.name}",
                        details={"product_id": product.id, "stock": product.stock},
                    )
                subtotal += product.price * item.quantity
                points_earned += product.points_reward * item.quantity

            coupon = None
            discount = 0
            free_shipping = False
            if request.coupon_code:
                coupon, discount, free_shipping = self.coupon_service.resolve_for_order(
                    request.coupon_code, user_id, subtotal, request.items
                )

            points_used = min(request.use_points, subtotal - discount)
            payable = subtotal - discount - points_used
            if free_shipping or payable >= settings.FREE_SHIPPING_THRESHOLD:
                shipping_cost = 0
            else:
                shipping_cost = settings.SHIPPING_COST

            if request.payment_method == PaymentMethod.BANK_TRANSFER:
                initial_status = OrderStatus.WAITING_PAYMENT.value
            else:
                initial_status = OrderStatus.PENDING.value

            order = self.order_repo.add(
                user_id=user_id,
                status=initial_status,
                payment_status=PaymentStatus.PENDING.value,
                payment_method=request.payment_method.value,
                subtotal=subtotal,
                discount_amount=discount,
                shipping_cost=shipping_cost,
                total=max(0, payable + shipping_cost),
                coupon_id=coupon.id if coupon else None,
                coupon_code=coupon.code if coupon else None,
                points_used=points_used,
                points_earned=points_earned,
                points_refunded=False,
                shipping_address=request.shipping_address,
                notes=request.notes,
            )
            order.order_number = f"ORD-{now_utc():%Y%m%d}-{order.id:06d}"

            for item in request.items:
                product = products[item.product_id]
                order.items.append(
                    OrderItem(
                        product_id=product.id,
                        product_name=product.name,
                        unit_price=product.price,
                        quantity=item.quantity,
                        points_reward=product.points_reward,
                    )
                )
                if not self.product_repo.reserve_stock(product.id, item.quantity):
                    raise ValidationError(
                        f"Insufficient stock for {product.name}",
                        details={"product_id": product.id},
                    )

            if coupon is not None:
                self.coupon_service.record_usage(coupon.id, discount)

            if points_used > 0:
                self.ledger.apply_entry(
                    user_id=user_id,
                    amount=-points_used,
                    reason=PointReason.ORDER_POINTS_REDEMPTION,
                    idempotency_key=f"order:{order.id}:points-redemption",
                    notes=f"Points used for order {order.order_number}",
                )
            self.db.flush()

        logger.info(
            f"Order {order.order_number} created for user {user_id}: total={order.total} "
            f"points_used={points_used} points_earned={points_earned}"
        )
        return self.order_repo._to_schema(order)

    # ------------------------------------------------------------------
    # 상태 전이
    # ------------------------------------------------------------------

    def update_status(
        self,
        order_id: int,
        new_status: str,
        actor_id: int,
        admin_notes: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> OrderResponse:
        """관리자 상태 변경

        Raises:
            ValidationError: 알 수 없는 상태값
            NotFoundError: 주문 없음
            InvalidTransitionError: 허용되지 않는 전이 또는 미결제 상태로 진행
        """
        if new_status not in ORDER_STATUSES:
            raise ValidationError(
                "Unknown order status", details={"status": new_status}
            )

        with transactional(self.db):
            order = self._get_order_model(order_id)
            self._transition(
                order, new_status, actor_id=actor_id, admin_id=actor_id, reason=reason
            )
            if admin_notes is not None:
                order.admin_notes = admin_notes
        return self.order_repo._to_schema(order)

    def update_payment_status(
        self, order_id: int, payment_status: str, admin_id: Optional[int] = None
    ) -> OrderResponse:
        """결제 상태 변경. paid 가 되면 입금 대기 주문은 processing 으로 이동"""
        if payment_status not in {p.value for p in PaymentStatus}:
            raise ValidationError(
                "Unknown payment status", details={"payment_status": payment_status}
            )

        with transactional(self.db):
            order = self._get_order_model(order_id)
            if order.status == OrderStatus.CANCELLED.value:
                raise InvalidTransitionError(
                    "Cannot change payment of a cancelled order",
                    details={"order_id": order.id},
                )
            order.payment_status = payment_status
            if payment_status == PaymentStatus.PAID.value:
                order.payment_confirmed_at = now_utc()
                if order.status in (
                    OrderStatus.WAITING_PAYMENT.value,
                    OrderStatus.WAITING_CONFIRMATION.value,
                ):
                    order.status = OrderStatus.PROCESSING.value
        logger.info(
            f"Order {order.id} payment_status -> {payment_status} (admin={admin_id})"
        )
        return self.order_repo._to_schema(order)

    def cancel_order(
        self, order_id: int, user_id: int, reason: Optional[str] = None
    ) -> OrderResponse:
        """사용자 취소 (결제 확인 전 단계에서만)"""
        with transactional(self.db):
            order = self._get_order_model(order_id, user_id=user_id)
            if order.status != OrderStatus.CANCELLED.value and (
                order.status not in USER_CANCELLABLE_STATUSES
            ):
                raise InvalidTransitionError(
                    "Order can no longer be cancelled",
                    details={"order_id": order.id, "status": order.status},
                )
            self._transition(
                order, OrderStatus.CANCELLED.value, actor_id=user_id, reason=reason
            )
        return self.order_repo._to_schema(order)

    def submit_payment_confirmation(
        self, order_id: int, user_id: int, request: PaymentConfirmationRequest
    ) -> OrderResponse:
        """계좌이체 입금 확인 정보 제출 -> waiting_confirmation"""
        with transactional(self.db):
            order = self._get_order_model(order_id, user_id=user_id)
            if order.payment_method != PaymentMethod.BANK_TRANSFER.value:
                raise ValidationError(
                    "Payment confirmation is only for bank transfer orders"
                )
            if order.status not in (
                OrderStatus.WAITING_PAYMENT.value,
                OrderStatus.WAITING_CONFIRMATION.value,
            ):
                raise InvalidTransitionError(
                    "Order is not awaiting payment",
                    details={"order_id": order.id, "status": order.status},
                )
            order.payment_confirmation = {
                **request.model_dump(),
                "submitted_at": now_utc().isoformat(),
            }
            order.payment_status = PaymentStatus.WAITING_CONFIRMATION.value
            order.status = OrderStatus.WAITING_CONFIRMATION.value
        return self.order_repo._to_schema(order)

    def mark_delivered(self, order_id: int, user_id: int) -> OrderResponse:
        """사용자가 수령 표시 (shipped -> delivered)"""
        with transactional(self.db):
            order = self._get_order_model(order_id, user_id=user_id)
            self._require_status(order, OrderStatus.SHIPPED.value)
            self._transition(order, OrderStatus.DELIVERED.value, actor_id=user_id)
        return self.order_repo._to_schema(order)

    def confirm_delivery(self, order_id: int, user_id: int) -> OrderResponse:
        """사용자가 구매 확정 (delivered -> completed, 포인트 적립)"""
        with transactional(self.db):
            order = self._get_order_model(order_id, user_id=user_id)
            self._require_status(order, OrderStatus.DELIVERED.value)
            self._transition(order, OrderStatus.COMPLETED.value, actor_id=user_id)
        return self.order_repo._to_schema(order)

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------

    def get_order(self, order_id: int, user_id: Optional[int] = None) -> OrderResponse:
        """user_id 가 주어지면 본인 주문만 조회"""
        return self.order_repo._to_schema(self._get_order_model(order_id, user_id))

    def list_orders(
        self,
        user_id: Optional[int] = None,
        status: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[OrderResponse], int]:
        if status is not None and status not in ORDER_STATUSES:
            raise ValidationError("Unknown order status", details={"status": status})
        return self.order_repo.list_orders(
            user_id=user_id, status=status, limit=limit, offset=offset
        )

    # ------------------------------------------------------------------
    # 내부
    # ------------------------------------------------------------------

    def _get_order_model(self, order_id: int, user_id: Optional[int] = None) -> Order:
        order = self.order_repo.get_with_items(order_id, for_update=True)
        if order is None or (user_id is not None and order.user_id != user_id):
            raise NotFoundError("Order not found", details={"order_id": order_id})
        return order

    @staticmethod
    def _require_status(order: Order, expected: str) -> None:
        if order.status != expected:
            raise InvalidTransitionError(
                f"Order must be {expected}",
                details={"order_id": order.id, "status": order.status},
            )

    def _transition(
        self,
        order: Order,
        new_status: str,
        actor_id: int,
        admin_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> None:
        old_status = order.status
        if new_status == old_status:
            # completed 재저장, 중복 취소 등은 정산 없이 no-op
            return
        if old_status == OrderStatus.CANCELLED.value:
            raise InvalidTransitionError(
                "Cancelled orders cannot change status",
                details={"order_id": order.id},
            )
        if (
            old_status == OrderStatus.COMPLETED.value
            and new_status != OrderStatus.CANCELLED.value
        ):
            raise InvalidTransitionError(
                "Completed orders can only be cancelled",
                details={"order_id": order.id, "status": new_status},
            )
        if (
            new_status in PAID_ONLY_STATUSES
            and order.payment_status != PaymentStatus.PAID.value
        ):
            raise InvalidTransitionError(
                f"Order must be paid before moving to {new_status}",
                details={"order_id": order.id, "payment_status": order.payment_status},
            )

        now = now_utc()
        if new_status == OrderStatus.COMPLETED.value:
            self._settle_completion(order, admin_id)
            order.completed_at = now
        elif new_status == OrderStatus.CANCELLED.value:
            self._settle_cancellation(order, old_status, admin_id)
            order.cancelled_at = now
            order.cancelled_by = actor_id
            order.cancel_reason = reason
        elif new_status == OrderStatus.SHIPPED.value:
            order.shipped_at = now
        elif new_status == OrderStatus.DELIVERED.value:
            order.delivered_at = now

        order.status = new_status
        logger.info(
            f"Order {order.id} status {old_status} -> {new_status} (actor={actor_id})"
        )

    def _settle_completion(self, order: Order, admin_id: Optional[int]) -> None:
        points = order.points_earned or 0
        if points <= 0:
            # 생성 시점 스냅샷 기준으로만 재계산 (현재 상품 정보는 사용하지 않음)
            points = sum(item.points_reward * item.quantity for item in order.items)
            order.points_earned = points
        if points <= 0:
            return
        self.ledger.apply_entry(
            user_id=order.user_id,
            amount=points,
            reason=PointReason.ORDER_COMPLETION,
            idempotency_key=completion_key(order.id),
            admin_id=admin_id,
            notes=f"Order {order.order_number} completed",
        )

    def _settle_cancellation(
        self, order: Order, old_status: str, admin_id: Optional[int]
    ) -> None:
        # 환불을 먼저 반영해야 적립 회수가 환불된 잔액 기준으로 검사됨
        if order.points_used > 0 and not order.points_refunded:
            self.ledger.apply_entry(
                user_id=order.user_id,
                amount=order.points_used,
                reason=PointReason.ORDER_POINTS_REFUND,
                idempotency_key=f"order:{order.id}:points-refund",
                admin_id=admin_id,
                notes=f"Refund of points used for order {order.order_number}",
            )
            order.points_refunded = True

        if old_status == OrderStatus.COMPLETED.value:
            credit = self.ledger.find_by_key(completion_key(order.id))
            if credit is not None:
                # 환불 후에도 잔액이 부족하면 InsufficientBalanceError 로 취소 전체 거부
                self.ledger.reverse_entry(
                    credit.id,
                    reason=PointReason.reversal_of(PointReason.ORDER_COMPLETION),
                    idempotency_key=f"order:{order.id}:completion-reversal",
                    admin_id=admin_id,
                    notes=f"Order {order.order_number} cancelled after completion",
                )

        for item in order.items:
            self.product_repo.restock(item.product_id, item.quantity)
