"""
대회 API 라우터

- 참여: 답안 제출 시 참가비(points_per_answer) 차감
- 정답 공개: 관리자가 정답을 공개하면 정답자 전원에게 reward_points 지급
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Path, Query

from loyaltyapi.core.auth_middleware import get_current_active_user, require_admin
from loyaltyapi.deps import get_contest_service
from loyaltyapi.schemas.auth import BaseResponse
from loyaltyapi.schemas.contest import (
    ContestCreateRequest,
    ContestSubmitRequest,
    PublishAnswerRequest,
)
from loyaltyapi.schemas.user import User as UserSchema
from loyaltyapi.services.contest_service import ContestService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contests", tags=["contests"])


@router.get("", response_model=BaseResponse)
def list_active_contests(
    contest_service: ContestService = Depends(get_contest_service),
) -> Any:
    contests = contest_service.list_active_contests()
    return BaseResponse(
        success=True, data={"contests": [c.model_dump() for c in contests]}
    )


@router.get("/me/submissions", response_model=BaseResponse)
def list_my_submissions(
    contest_id: Optional[int] = Query(None, gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    contest_service: ContestService = Depends(get_contest_service),
) -> Any:
    submissions = contest_service.list_user_submissions(current_user.id, contest_id)
    return BaseResponse(
        success=True, data={"submissions": [s.model_dump() for s in submissions]}
    )


@router.get("/{contest_id}", response_model=BaseResponse)
def get_contest(
    contest_id: int = Path(..., gt=0),
    contest_service: ContestService = Depends(get_contest_service),
) -> Any:
    contest = contest_service.get_contest(contest_id)
    return BaseResponse(success=True, data=contest.model_dump())


@router.post("/{contest_id}/submit", response_model=BaseResponse)
def submit_contest_answer(
    request: ContestSubmitRequest,
    contest_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    contest_service: ContestService = Depends(get_contest_service),
) -> Any:
    result = contest_service.submit_answer(contest_id, current_user.id, request.answer)
    return BaseResponse(success=True, data=result.model_dump())


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.post("/admin", response_model=BaseResponse)
def admin_create_contest(
    request: ContestCreateRequest,
    current_user: UserSchema = Depends(require_admin),
    contest_service: ContestService = Depends(get_contest_service),
) -> Any:
    contest = contest_service.create_contest(current_user.id, request)
    return BaseResponse(success=True, data=contest.model_dump())


@router.post("/admin/{contest_id}/publish", response_model=BaseResponse)
def admin_publish_answer(
    request: PublishAnswerRequest,
    contest_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(require_admin),
    contest_service: ContestService = Depends(get_contest_service),
) -> Any:
    """정답 공개 및 정답자 일괄 보상 (대회당 1회)"""
    result = contest_service.publish_answer(
        contest_id, request.correct_answer, current_user.id
    )
    return BaseResponse(success=True, data=result.model_dump())


@router.get("/admin/{contest_id}/submissions", response_model=BaseResponse)
def admin_list_submissions(
    contest_id: int = Path(..., gt=0),
    result_filter: Optional[str] = Query(
        None, alias="filter", description="correct | incorrect | pending"
    ),
    _current_user: UserSchema = Depends(require_admin),
    contest_service: ContestService = Depends(get_contest_service),
) -> Any:
    result = contest_service.list_submissions(contest_id, result_filter)
    return BaseResponse(success=True, data=result.model_dump())
