from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from loyaltyapi.models.user import User as UserModel
from loyaltyapi.repositories.base import BaseRepository
from loyaltyapi.schemas.user import User as UserSchema


class UserRepository(BaseRepository[UserModel, UserSchema]):
    """사용자 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(UserModel, UserSchema, db)

    def get_by_email(self, email: str) -> Optional[UserSchema]:
        model_instance = (
            self.db.query(self.model_class)
            .filter(self.model_class.email == email)
            .first()
        )
        return self._to_schema(model_instance)

    def get_points(self, user_id: int) -> Optional[int]:
        """users.points 를 DB 에서 직접 읽음 (세션 캐시 무시)"""
        return self.db.execute(
            select(self.model_class.points).where(self.model_class.id == user_id)
        ).scalar_one_or_none()
