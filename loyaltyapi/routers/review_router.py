import logging
from typing import Any

from fastapi import APIRouter, Depends, Path, Query

from loyaltyapi.core.auth_middleware import get_current_active_user
from loyaltyapi.deps import get_review_service
from loyaltyapi.schemas.auth import BaseResponse
from loyaltyapi.schemas.review import ReviewCreateRequest
from loyaltyapi.schemas.user import User as UserSchema
from loyaltyapi.services.review_service import ReviewService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.post("", response_model=BaseResponse)
def create_review(
    request: ReviewCreateRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    review_service: ReviewService = Depends(get_review_service),
) -> Any:
    """상품 리뷰 작성 (구매 확정 상품이면 리뷰 포인트 지급)"""
    review = review_service.create_review(current_user.id, request)
    return BaseResponse(success=True, data=review.model_dump())


@router.get("/product/{product_id}", response_model=BaseResponse)
def list_product_reviews(
    product_id: int = Path(..., gt=0),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    review_service: ReviewService = Depends(get_review_service),
) -> Any:
    result = review_service.list_product_reviews(product_id, limit=limit, offset=offset)
    return BaseResponse(
        success=True,
        data=result.model_dump(),
        meta={
            "limit": limit,
            "offset": offset,
            "total_count": result.total_count,
            "has_next": offset + len(result.reviews) < result.total_count,
        },
    )
