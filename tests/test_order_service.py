from datetime import timedelta

import pytest

from loyaltyapi.core.exceptions import (
    InsufficientBalanceError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from loyaltyapi.models.coupon import Coupon
from loyaltyapi.models.order import Order
from loyaltyapi.models.points import PointTransaction
from loyaltyapi.models.product import Product
from loyaltyapi.schemas.order import (
    OrderCreateRequest,
    OrderItemRequest,
    PaymentConfirmationRequest,
)
from loyaltyapi.schemas.points import AdminPointsGrantRequest
from loyaltyapi.services.ledger_service import LedgerService
from loyaltyapi.services.order_service import OrderService
from loyaltyapi.utils.timezone_utils import now_utc


@pytest.fixture
def order_service(db_session):
    return OrderService(db_session)


@pytest.fixture
def ledger(db_session):
    return LedgerService(db_session)


def _order_request(product, quantity=1, **kwargs):
    return OrderCreateRequest(
        items=[OrderItemRequest(product_id=product.id, quantity=quantity)],
        **kwargs,
    )


def _complete(order_service, order_id, admin_id):
    """결제 -> 배송 -> 구매 확정"""
    order_service.update_payment_status(order_id, "paid", admin_id=admin_id)
    order_service.update_status(order_id, "shipped", actor_id=admin_id)
    order_service.update_status(order_id, "delivered", actor_id=admin_id)
    return order_service.update_status(order_id, "completed", actor_id=admin_id)


def _keys(db_session, user_id):
    return [
        t.idempotency_key
        for t in db_session.query(PointTransaction)
        .filter(PointTransaction.user_id == user_id)
        .order_by(PointTransaction.id)
    ]


class TestCreateOrder:
    """주문 생성 테스트"""

    def test_snapshots_items_and_reserves_stock(self, db_session, order_service, make_user, make_product):
        # Given
        user = make_user()
        product = make_product(price=400, stock=5, points_reward=3)

        # When
        order = order_service.create_order(user.id, _order_request(product, quantity=2))

        # Then
        assert order.status == "waiting_payment"
        assert order.subtotal == 800
        assert order.shipping_cost == 100
        assert order.total == 900
        assert order.points_earned == 6
        assert order.items[0].unit_price == 400
        assert order.order_number.startswith("ORD-")
        db_session.refresh(product)
        assert product.stock == 3
        assert product.purchase_count == 2

    def test_cod_order_starts_pending(self, order_service, make_user, make_product):
        user = make_user()
        product = make_product()
        order = order_service.create_order(
            user.id, _order_request(product, payment_method="cod")
        )
        assert order.status == "pending"

    def test_free_shipping_over_threshold(self, order_service, make_user, make_product):
        user = make_user()
        product = make_product(price=1200)
        order = order_service.create_order(user.id, _order_request(product))
        assert order.shipping_cost == 0
        assert order.total == 1200

    def test_uses_points_capped_at_payable(self, db_session, order_service, make_user, make_product):
        """사용 포인트는 결제 금액을 넘지 않음"""
        user = make_user(points=1000)
        product = make_product(price=300)

        order = order_service.create_order(user.id, _order_request(product, use_points=800))

        assert order.points_used == 300
        assert order.total == 100  # 배송비만 남음
        db_session.refresh(user)
        assert user.points == 700
        assert f"order:{order.id}:points-redemption" in _keys(db_session, user.id)

    def test_insufficient_points_rolls_back_everything(self, db_session, order_service, make_user, make_product):
        user = make_user(points=50)
        product = make_product(price=300, stock=4)

        with pytest.raises(InsufficientBalanceError):
            order_service.create_order(user.id, _order_request(product, use_points=200))

        assert db_session.query(Order).count() == 0
        assert db_session.get(Product, product.id).stock == 4

    def test_insufficient_stock(self, order_service, make_user, make_product):
        user = make_user()
        product = make_product(stock=1)
        with pytest.raises(ValidationError):
            order_service.create_order(user.id, _order_request(product, quantity=2))

    def test_unknown_product(self, order_service, make_user):
        user = make_user()
        request = OrderCreateRequest(items=[OrderItemRequest(product_id=77, quantity=1)])
        with pytest.raises(NotFoundError):
            order_service.create_order(user.id, request)

    def test_applies_coupon_and_records_usage(self, db_session, order_service, make_user, make_product):
        # Given
        user = make_user()
        product = make_product(price=1000)
        coupon = Coupon(
            code="SAVE15",
            name="15% off",
            discount_type="percentage",
            discount_value=15,
            usage_limit=1,
            valid_from=now_utc() - timedelta(days=1),
            valid_until=now_utc() + timedelta(days=1),
        )
        db_session.add(coupon)
        db_session.commit()

        # When
        order = order_service.create_order(
            user.id, _order_request(product, coupon_code="save15")
        )

        # Then
        assert order.discount_amount == 150
        assert order.coupon_code == "SAVE15"
        assert order.shipping_cost == 100
        db_session.refresh(coupon)
        assert coupon.used_count == 1
        assert coupon.total_discount_given == 150

        # 사용 한도 소진
        with pytest.raises(ValidationError):
            order_service.create_order(user.id, _order_request(product, coupon_code="SAVE15"))


class TestOrderSettlement:
    """상태 전이에 따른 포인트 정산 테스트"""

    def test_completion_credits_points_once(self, db_session, order_service, ledger, make_user, make_product):
        # Given
        admin = make_user(role="admin")
        user = make_user()
        product = make_product(price=200, points_reward=5)
        order = order_service.create_order(user.id, _order_request(product, quantity=4))

        # When
        _complete(order_service, order.id, admin.id)
        again = order_service.update_status(order.id, "completed", actor_id=admin.id)

        # Then
        assert again.status == "completed"
        assert ledger.get_balance(user.id).balance == 20
        assert _keys(db_session, user.id) == [f"order:{order.id}:completion"]

    def test_cannot_progress_unpaid_order(self, order_service, make_user, make_product):
        admin = make_user(role="admin")
        user = make_user()
        order = order_service.create_order(user.id, _order_request(make_product()))

        with pytest.raises(InvalidTransitionError):
            order_service.update_status(order.id, "shipped", actor_id=admin.id)

    def test_paid_moves_waiting_order_to_processing(self, order_service, make_user, make_product):
        admin = make_user(role="admin")
        user = make_user()
        order = order_service.create_order(user.id, _order_request(make_product()))

        order_service.submit_payment_confirmation(
            order.id, user.id, PaymentConfirmationRequest(transfer_reference="TX-1")
        )
        updated = order_service.update_payment_status(order.id, "paid", admin_id=admin.id)

        assert updated.status == "processing"
        assert updated.payment_confirmed_at is not None

    def test_cancel_after_completion_revokes_and_refunds(self, db_session, order_service, ledger, make_user, make_product):
        """completed -> cancelled: 적립 회수 + 사용 포인트 환불 + 재고 복구"""
        # Given
        admin = make_user(role="admin")
        user = make_user(points=100)
        product = make_product(price=500, stock=3, points_reward=10)
        order = order_service.create_order(user.id, _order_request(product, use_points=100))
        _complete(order_service, order.id, admin.id)
        assert ledger.get_balance(user.id).balance == 10

        # When
        cancelled = order_service.update_status(
            order.id, "cancelled", actor_id=admin.id, reason="damaged"
        )

        # Then
        assert cancelled.status == "cancelled"
        assert cancelled.points_refunded is True
        assert ledger.get_balance(user.id).balance == 100
        assert ledger.verify_user_integrity(user.id).is_valid is True
        assert db_session.get(Product, product.id).stock == 3

        # 중복 취소는 no-op
        order_service.update_status(order.id, "cancelled", actor_id=admin.id)
        assert ledger.get_balance(user.id).balance == 100

    def test_revoke_fails_when_points_already_spent(self, order_service, ledger, make_user, make_product):
        admin = make_user(role="admin")
        user = make_user()
        product = make_product(price=500, points_reward=30)
        order = order_service.create_order(user.id, _order_request(product))
        _complete(order_service, order.id, admin.id)
        ledger.grant_points(
            admin.id, AdminPointsGrantRequest(user_id=user.id, amount=-25)
        )

        with pytest.raises(InsufficientBalanceError):
            order_service.update_status(order.id, "cancelled", actor_id=admin.id)

        assert order_service.get_order(order.id).status == "completed"
        assert ledger.get_balance(user.id).balance == 5

    def test_refund_covers_revoke_when_earned_points_were_spent(self, db_session, order_service, ledger, make_user, make_product):
        """환불이 먼저 반영되므로 적립분을 써버렸어도 취소 가능 (100 사용, 10 적립, 10 소진 -> 90)"""
        # Given
        admin = make_user(role="admin")
        user = make_user(points=100)
        product = make_product(price=500, points_reward=10)
        order = order_service.create_order(user.id, _order_request(product, use_points=100))
        _complete(order_service, order.id, admin.id)
        ledger.grant_points(
            admin.id, AdminPointsGrantRequest(user_id=user.id, amount=-10)
        )
        assert ledger.get_balance(user.id).balance == 0

        # When
        cancelled = order_service.update_status(order.id, "cancelled", actor_id=admin.id)

        # Then
        assert cancelled.status == "cancelled"
        assert cancelled.points_refunded is True
        assert ledger.get_balance(user.id).balance == 90
        assert _keys(db_session, user.id)[-2:] == [
            f"order:{order.id}:points-refund",
            f"order:{order.id}:completion-reversal",
        ]
        assert ledger.verify_user_integrity(user.id).is_valid is True

    def test_completion_recomputes_from_item_snapshots(self, db_session, order_service, ledger, make_user, make_product):
        """points_earned 가 0 이면 주문 시점 스냅샷으로 재계산 (현재 상품 값은 무시)"""
        admin = make_user(role="admin")
        user = make_user()
        product = make_product(price=500, points_reward=7)
        order = order_service.create_order(user.id, _order_request(product, quantity=2))

        row = db_session.get(Order, order.id)
        row.points_earned = 0
        db_session.get(Product, product.id).points_reward = 100
        db_session.commit()

        completed = _complete(order_service, order.id, admin.id)

        assert completed.points_earned == 14
        assert ledger.get_balance(user.id).balance == 14

    def test_user_cancel_refunds_points_and_restocks(self, db_session, order_service, ledger, make_user, make_product):
        user = make_user(points=200)
        product = make_product(price=600, stock=2)
        order = order_service.create_order(user.id, _order_request(product, use_points=150))

        cancelled = order_service.cancel_order(order.id, user.id, reason="changed my mind")

        assert cancelled.cancel_reason == "changed my mind"
        assert ledger.get_balance(user.id).balance == 200
        assert db_session.get(Product, product.id).stock == 2

    def test_user_cannot_cancel_shipped_order(self, order_service, make_user, make_product):
        admin = make_user(role="admin")
        user = make_user()
        order = order_service.create_order(user.id, _order_request(make_product()))
        order_service.update_payment_status(order.id, "paid", admin_id=admin.id)
        order_service.update_status(order.id, "shipped", actor_id=admin.id)

        with pytest.raises(InvalidTransitionError):
            order_service.cancel_order(order.id, user.id)

    def test_user_confirms_delivery(self, order_service, ledger, make_user, make_product):
        admin = make_user(role="admin")
        user = make_user()
        order = order_service.create_order(
            user.id, _order_request(make_product(points_reward=4))
        )
        order_service.update_payment_status(order.id, "paid", admin_id=admin.id)
        order_service.update_status(order.id, "shipped", actor_id=admin.id)

        order_service.mark_delivered(order.id, user.id)
        confirmed = order_service.confirm_delivery(order.id, user.id)

        assert confirmed.status == "completed"
        assert ledger.get_balance(user.id).balance == 4

    def test_other_users_order_is_hidden(self, order_service, make_user, make_product):
        owner, stranger = make_user(), make_user()
        order = order_service.create_order(owner.id, _order_request(make_product()))
        with pytest.raises(NotFoundError):
            order_service.get_order(order.id, user_id=stranger.id)

    def test_unknown_status(self, order_service, make_user, make_product):
        user = make_user()
        order = order_service.create_order(user.id, _order_request(make_product()))
        with pytest.raises(ValidationError):
            order_service.update_status(order.id, "lost", actor_id=user.id)
