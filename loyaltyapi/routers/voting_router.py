import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Path, Query

from loyaltyapi.core.auth_middleware import get_current_active_user, require_admin
from loyaltyapi.deps import get_voting_service
from loyaltyapi.schemas.auth import BaseResponse
from loyaltyapi.schemas.user import User as UserSchema
from loyaltyapi.schemas.voting import CampaignCreateRequest, EntryCreateRequest
from loyaltyapi.services.voting_service import VotingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/voting", tags=["voting"])


@router.get("/me/history", response_model=BaseResponse)
def get_my_voting_history(
    campaign_id: Optional[int] = Query(None, gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    voting_service: VotingService = Depends(get_voting_service),
) -> Any:
    votes = voting_service.get_user_voting_history(current_user.id, campaign_id)
    return BaseResponse(success=True, data={"votes": [v.model_dump() for v in votes]})


@router.get("/{campaign_id}", response_model=BaseResponse)
def get_campaign(
    campaign_id: int = Path(..., gt=0),
    voting_service: VotingService = Depends(get_voting_service),
) -> Any:
    """캠페인과 투표 가능한 후보 목록"""
    campaign = voting_service.get_campaign(campaign_id)
    return BaseResponse(success=True, data=campaign.model_dump())


@router.post("/{campaign_id}/entries/{entry_id}/vote", response_model=BaseResponse)
def vote(
    campaign_id: int = Path(..., gt=0),
    entry_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    voting_service: VotingService = Depends(get_voting_service),
) -> Any:
    result = voting_service.vote(campaign_id, entry_id, current_user.id)
    return BaseResponse(success=True, data=result.model_dump())


@router.delete("/{campaign_id}/entries/{entry_id}/vote", response_model=BaseResponse)
def remove_vote(
    campaign_id: int = Path(..., gt=0),
    entry_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    voting_service: VotingService = Depends(get_voting_service),
) -> Any:
    """투표 취소 - 투표로 받은 포인트 회수"""
    result = voting_service.remove_vote(campaign_id, entry_id, current_user.id)
    return BaseResponse(success=True, data=result.model_dump())


@router.post("/admin/campaigns", response_model=BaseResponse)
def admin_create_campaign(
    request: CampaignCreateRequest,
    current_user: UserSchema = Depends(require_admin),
    voting_service: VotingService = Depends(get_voting_service),
) -> Any:
    campaign = voting_service.create_campaign(current_user.id, request)
    return BaseResponse(success=True, data=campaign.model_dump())


@router.post("/admin/campaigns/{campaign_id}/entries", response_model=BaseResponse)
def admin_add_entry(
    request: EntryCreateRequest,
    campaign_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(require_admin),
    voting_service: VotingService = Depends(get_voting_service),
) -> Any:
    entry = voting_service.add_entry(campaign_id, current_user.id, request)
    return BaseResponse(success=True, data=entry.model_dump())
