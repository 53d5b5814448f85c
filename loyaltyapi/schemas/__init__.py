from .auth import BaseResponse, Error, ErrorCode
from .user import User
from .points import LedgerEntryResult, PointTransactionEntry
from .order import OrderCreateRequest, OrderResponse
from .coupon import CouponResponse
from .contest import ContestResponse, ContestSubmissionResponse
from .voting import CampaignResponse, EntryResponse
from .survey import SurveyResponse
from .review import ReviewResponse
