from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from loyaltyapi.models.user import UserRole


class User(BaseModel):
    id: int
    email: str
    nickname: str
    points: int = 0
    is_active: bool = True
    role: UserRole = UserRole.USER
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def is_admin(self) -> bool:
        return UserRole.is_admin(self.role)
