# 모든 모델을 import 해서 Base.metadata 에 테이블이 등록되도록 함
from loyaltyapi.models.base import Base  # noqa: F401
from loyaltyapi.models.user import User  # noqa: F401
from loyaltyapi.models.points import PointTransaction  # noqa: F401
from loyaltyapi.models.product import Product  # noqa: F401
from loyaltyapi.models.coupon import Coupon  # noqa: F401
from loyaltyapi.models.order import Order, OrderItem  # noqa: F401
from loyaltyapi.models.contest import Contest, ContestSubmission  # noqa: F401
from loyaltyapi.models.voting import UserVote, VoteEntry, VotingCampaign  # noqa: F401
from loyaltyapi.models.survey import Survey, SurveySubmission  # noqa: F401
from loyaltyapi.models.review import Review  # noqa: F401
