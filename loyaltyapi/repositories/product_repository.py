from typing import Dict, Iterable

from sqlalchemy import case, update
from sqlalchemy.orm import Session

from loyaltyapi.models.product import Product as ProductModel
from loyaltyapi.repositories.base import BaseRepository
from loyaltyapi.schemas.product import ProductResponse


class ProductRepository(BaseRepository[ProductModel, ProductResponse]):
    """상품/재고 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(ProductModel, ProductResponse, db)

    def get_many(self, product_ids: Iterable[int]) -> Dict[int, ProductModel]:
        ids = set(product_ids)
        if not ids:
            return {}
        rows = self.db.query(self.model_class).filter(self.model_class.id.in_(ids)).all()
        return {row.id: row for row in rows}

    def reserve_stock(self, product_id: int, quantity: int) -> bool:
        """재고 차감 + 구매 수 증가 (stock >= quantity 일 때만)"""
        stmt = (
            update(self.model_class)
            .where(self.model_class.id == product_id)
            .where(self.model_class.stock >= quantity)
            .values(
                stock=self.model_class.stock - quantity,
                purchase_count=self.model_class.purchase_count + quantity,
            )
            .execution_options(synchronize_session="fetch")
        )
        return self.db.execute(stmt).rowcount == 1

    def restock(self, product_id: int, quantity: int) -> None:
        """취소 시 재고 복구, 구매 수는 0 미만으로 내려가지 않음"""
        stmt = (
            update(self.model_class)
            .where(self.model_class.id == product_id)
            .values(
                stock=self.model_class.stock + quantity,
                purchase_count=case(
                    (self.model_class.purchase_count >= quantity,
                     self.model_class.purchase_count - quantity),
                    else_=0,
                ),
            )
            .execution_options(synchronize_session="fetch")
        )
        self.db.execute(stmt)
