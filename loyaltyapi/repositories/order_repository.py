from typing import List, Optional, Tuple

from sqlalchemy import desc, exists, select
from sqlalchemy.orm import Session, selectinload

from loyaltyapi.models.order import Order as OrderModel
from loyaltyapi.models.order import OrderItem, OrderStatus
from loyaltyapi.repositories.base import BaseRepository
from loyaltyapi.schemas.order import OrderResponse


class OrderRepository(BaseRepository[OrderModel, OrderResponse]):
    """주문 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(OrderModel, OrderResponse, db)

    def get_with_items(
        self, order_id: int, for_update: bool = False
    ) -> Optional[OrderModel]:
        query = (
            self.db.query(self.model_class)
            .options(selectinload(self.model_class.items))
            .filter(self.model_class.id == order_id)
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def list_orders(
        self,
        user_id: Optional[int] = None,
        status: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[OrderResponse], int]:
        query = self.db.query(self.model_class).options(
            selectinload(self.model_class.items)
        )
        if user_id is not None:
            query = query.filter(self.model_class.user_id == user_id)
        if status:
            query = query.filter(self.model_class.status == status)

        total = query.count()
        rows = query.order_by(desc(self.model_class.id)).offset(offset).limit(limit).all()
        return [self._to_schema(row) for row in rows], total

    def has_completed_purchase(self, user_id: int, product_id: int) -> bool:
        """사용자가 해당 상품이 포함된 완료 주문을 가지고 있는지"""
        stmt = select(
            exists()
            .where(OrderItem.order_id == self.model_class.id)
            .where(OrderItem.product_id == product_id)
            .where(self.model_class.user_id == user_id)
            .where(self.model_class.status == OrderStatus.COMPLETED.value)
        )
        return bool(self.db.execute(stmt).scalar())
