import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from loyaltyapi.config import settings
from loyaltyapi.core.exceptions import AlreadyProcessedError, NotFoundError
from loyaltyapi.database.session import transactional
from loyaltyapi.models.points import PointReason
from loyaltyapi.repositories.order_repository import OrderRepository
from loyaltyapi.repositories.product_repository import ProductRepository
from loyaltyapi.repositories.review_repository import ReviewRepository
from loyaltyapi.schemas.review import (
    ReviewCreateRequest,
    ReviewListResponse,
    ReviewResponse,
)
from loyaltyapi.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)


class ReviewService:
    def __init__(self, db: Session):
        self.db = db
        self.review_repo = ReviewRepository(db)
        self.product_repo = ProductRepository(db)
        self.order_repo = OrderRepository(db)
        self.ledger = LedgerService(db)

    def create_review(self, user_id: int, request: ReviewCreateRequest) -> ReviewResponse:
        """상품 리뷰 작성 - (사용자, 상품) 당 1회, 조건 충족 시 review-reward 지급"""
        with transactional(self.db):
            if self.product_repo.get_model(request.product_id) is None:
                raise NotFoundError(
                    "Product not found", details={"product_id": request.product_id}
                )
            if self.review_repo.find_by_user_and_product(user_id, request.product_id):
                raise AlreadyProcessedError("You have already reviewed this product")

            try:
                with self.db.begin_nested():
                    review = self.review_repo.add(
                        product_id=request.product_id,
                        user_id=user_id,
                        rating=request.rating,
                        comment=request.comment,
                        is_anonymous=request.is_anonymous,
                        points_awarded=0,
                    )
            except IntegrityError as e:
                raise AlreadyProcessedError("You have already reviewed this product") from e

            if self._is_reward_eligible(user_id, request.product_id):
                self.ledger.apply_entry(
                    user_id=user_id,
                    amount=settings.REVIEW_REWARD_POINTS,
                    reason=PointReason.REVIEW_REWARD,
                    idempotency_key=f"review:{request.product_id}:user:{user_id}",
                    notes=f"Review reward for product {request.product_id}",
                )
                review.points_awarded = settings.REVIEW_REWARD_POINTS
            self.db.flush()

        logger.info(
            f"User {user_id} reviewed product {request.product_id} "
            f"(reward={review.points_awarded})"
        )
        return self.review_repo._to_schema(review)

    def list_product_reviews(
        self, product_id: int, limit: int = 20, offset: int = 0
    ) -> ReviewListResponse:
        if self.product_repo.get_model(product_id) is None:
            raise NotFoundError("Product not found", details={"product_id": product_id})
        reviews, total, average = self.review_repo.list_for_product(
            product_id, limit=limit, offset=offset
        )
        return ReviewListResponse(
            reviews=reviews, total_count=total, average_rating=average
        )

    def _is_reward_eligible(self, user_id: int, product_id: int) -> bool:
        if settings.REVIEW_REWARD_POINTS <= 0:
            return False
        if not settings.REVIEW_REWARD_REQUIRES_PURCHASE:
            return True
        return self.order_repo.has_completed_purchase(user_id, product_id)
