# Repository layer - Data access with Pydantic responses

from .base import BaseRepository
from .user_repository import UserRepository
from .points_repository import PointsRepository
from .product_repository import ProductRepository
from .coupon_repository import CouponRepository
from .order_repository import OrderRepository
from .contest_repository import ContestRepository, ContestSubmissionRepository
from .voting_repository import VotingRepository
from .survey_repository import SurveyRepository
from .review_repository import ReviewRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "PointsRepository",
    "ProductRepository",
    "CouponRepository",
    "OrderRepository",
    "ContestRepository",
    "ContestSubmissionRepository",
    "VotingRepository",
    "SurveyRepository",
    "ReviewRepository",
]
