from unittest.mock import patch

import pytest

from loyaltyapi.core.exceptions import AlreadyProcessedError, NotFoundError
from loyaltyapi.schemas.order import OrderCreateRequest, OrderItemRequest
from loyaltyapi.schemas.review import ReviewCreateRequest
from loyaltyapi.services.ledger_service import LedgerService
from loyaltyapi.services.order_service import OrderService
from loyaltyapi.services.review_service import ReviewService


@pytest.fixture
def review_service(db_session):
    return ReviewService(db_session)


def _buy_and_complete(db_session, user, product, admin):
    orders = OrderService(db_session)
    order = orders.create_order(
        user.id,
        OrderCreateRequest(items=[OrderItemRequest(product_id=product.id, quantity=1)]),
    )
    orders.update_payment_status(order.id, "paid", admin_id=admin.id)
    orders.update_status(order.id, "shipped", actor_id=admin.id)
    orders.update_status(order.id, "delivered", actor_id=admin.id)
    orders.update_status(order.id, "completed", actor_id=admin.id)


class TestReviewService:
    def test_reward_after_completed_purchase(self, db_session, review_service, make_user, make_product):
        # Given
        admin = make_user(role="admin")
        user = make_user()
        product = make_product()
        _buy_and_complete(db_session, user, product, admin)

        # When
        review = review_service.create_review(
            user.id, ReviewCreateRequest(product_id=product.id, rating=5, comment="Lovely")
        )

        # Then
        assert review.points_awarded == 10
        assert LedgerService(db_session).get_balance(user.id).balance == 10

    def test_no_reward_without_purchase(self, db_session, review_service, make_user, make_product):
        user = make_user()
        product = make_product()

        review = review_service.create_review(
            user.id, ReviewCreateRequest(product_id=product.id, rating=3)
        )

        assert review.points_awarded == 0
        assert LedgerService(db_session).get_balance(user.id).balance == 0

    def test_reward_without_purchase_when_not_required(self, db_session, review_service, make_user, make_product):
        user = make_user()
        product = make_product()

        with patch(
            "loyaltyapi.services.review_service.settings.REVIEW_REWARD_REQUIRES_PURCHASE",
            False,
        ):
            review = review_service.create_review(
                user.id, ReviewCreateRequest(product_id=product.id, rating=4)
            )

        assert review.points_awarded == 10

    def test_one_review_per_product(self, review_service, make_user, make_product):
        user = make_user()
        product = make_product()
        review_service.create_review(user.id, ReviewCreateRequest(product_id=product.id, rating=4))

        with pytest.raises(AlreadyProcessedError):
            review_service.create_review(
                user.id, ReviewCreateRequest(product_id=product.id, rating=1)
            )

    def test_list_reviews_with_average(self, review_service, make_user, make_product):
        product = make_product()
        for rating in (5, 2):
            review_service.create_review(
                make_user().id, ReviewCreateRequest(product_id=product.id, rating=rating)
            )

        listing = review_service.list_product_reviews(product.id)

        assert listing.total_count == 2
        assert listing.average_rating == 3.5

    def test_unknown_product(self, review_service, make_user):
        with pytest.raises(NotFoundError):
            review_service.create_review(
                make_user().id, ReviewCreateRequest(product_id=404, rating=5)
            )
