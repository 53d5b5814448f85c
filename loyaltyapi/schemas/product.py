from typing import Optional

from pydantic import BaseModel


class ProductResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: int
    stock: int
    points_reward: int
    purchase_count: int
    is_active: bool

    class Config:
        from_attributes = True
