import logging
from typing import Any

from fastapi import APIRouter, Depends, Path

from loyaltyapi.core.auth_middleware import get_current_active_user, require_admin
from loyaltyapi.deps import get_survey_service
from loyaltyapi.schemas.auth import BaseResponse
from loyaltyapi.schemas.survey import SurveyCreateRequest, SurveySubmitRequest
from loyaltyapi.schemas.user import User as UserSchema
from loyaltyapi.services.survey_service import SurveyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/surveys", tags=["surveys"])


@router.get("", response_model=BaseResponse)
def list_surveys(
    survey_service: SurveyService = Depends(get_survey_service),
) -> Any:
    surveys = survey_service.list_published_surveys()
    return BaseResponse(success=True, data={"surveys": [s.model_dump() for s in surveys]})


@router.get("/{survey_id}", response_model=BaseResponse)
def get_survey(
    survey_id: int = Path(..., gt=0),
    survey_service: SurveyService = Depends(get_survey_service),
) -> Any:
    survey = survey_service.get_survey(survey_id)
    return BaseResponse(success=True, data=survey.model_dump())


@router.post("/{survey_id}/submit", response_model=BaseResponse)
def submit_survey(
    request: SurveySubmitRequest,
    survey_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    survey_service: SurveyService = Depends(get_survey_service),
) -> Any:
    """설문 제출 - 교차 검증 실패 시 기록은 남기고 포인트는 지급하지 않음"""
    result = survey_service.submit_survey(survey_id, current_user.id, request)
    return BaseResponse(success=True, data=result.model_dump())


@router.post("/admin", response_model=BaseResponse)
def admin_create_survey(
    request: SurveyCreateRequest,
    current_user: UserSchema = Depends(require_admin),
    survey_service: SurveyService = Depends(get_survey_service),
) -> Any:
    survey = survey_service.create_survey(current_user.id, request)
    return BaseResponse(success=True, data=survey.model_dump())


@router.post("/admin/{survey_id}/publish", response_model=BaseResponse)
def admin_publish_survey(
    survey_id: int = Path(..., gt=0),
    _current_user: UserSchema = Depends(require_admin),
    survey_service: SurveyService = Depends(get_survey_service),
) -> Any:
    survey = survey_service.publish_survey(survey_id)
    return BaseResponse(success=True, data=survey.model_dump())
