from fastapi import Depends
from sqlalchemy.orm import Session

from loyaltyapi.database.session import get_db

# Services
from loyaltyapi.services.contest_service import ContestService
from loyaltyapi.services.coupon_service import CouponService
from loyaltyapi.services.ledger_service import LedgerService
from loyaltyapi.services.order_service import OrderService
from loyaltyapi.services.review_service import ReviewService
from loyaltyapi.services.survey_service import SurveyService
from loyaltyapi.services.voting_service import VotingService


def get_ledger_service(db: Session = Depends(get_db)) -> LedgerService:
    return LedgerService(db=db)


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db=db)


def get_coupon_service(db: Session = Depends(get_db)) -> CouponService:
    return CouponService(db=db)


def get_contest_service(db: Session = Depends(get_db)) -> ContestService:
    return ContestService(db=db)


def get_voting_service(db: Session = Depends(get_db)) -> VotingService:
    return VotingService(db=db)


def get_survey_service(db: Session = Depends(get_db)) -> SurveyService:
    return SurveyService(db=db)


def get_review_service(db: Session = Depends(get_db)) -> ReviewService:
    return ReviewService(db=db)
