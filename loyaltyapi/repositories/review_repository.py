from typing import List, Optional, Tuple

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from loyaltyapi.models.review import Review as ReviewModel
from loyaltyapi.repositories.base import BaseRepository
from loyaltyapi.schemas.review import ReviewResponse


class ReviewRepository(BaseRepository[ReviewModel, ReviewResponse]):
    def __init__(self, db: Session):
        super().__init__(ReviewModel, ReviewResponse, db)

    def find_by_user_and_product(
        self, user_id: int, product_id: int
    ) -> Optional[ReviewModel]:
        return (
            self.db.query(self.model_class)
            .filter(
                self.model_class.user_id == user_id,
                self.model_class.product_id == product_id,
            )
            .first()
        )

    def list_for_product(
        self, product_id: int, limit: int = 20, offset: int = 0
    ) -> Tuple[List[ReviewResponse], int, Optional[float]]:
        query = self.db.query(self.model_class).filter(
            self.model_class.product_id == product_id
        )
        total = query.count()
        average = (
            self.db.query(func.avg(self.model_class.rating))
            .filter(self.model_class.product_id == product_id)
            .scalar()
        )
        rows = query.order_by(desc(self.model_class.id)).offset(offset).limit(limit).all()
        return (
            [self._to_schema(row) for row in rows],
            total,
            round(float(average), 2) if average is not None else None,
        )
