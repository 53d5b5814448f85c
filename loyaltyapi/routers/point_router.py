"""
포인트 원장 API 라우터

사용자용 엔드포인트:
- GET /points/balance: 내 포인트 잔액
- GET /points/ledger: 내 포인트 거래 내역 (최신순, reason 필터)
- GET /points/integrity/my: 내 원장 정합성 검증

관리자용 엔드포인트:
- POST /points/admin/grant: 포인트 지급/차감
- GET /points/admin/balance/{user_id}: 사용자 잔액
- GET /points/admin/ledger/{user_id}: 사용자 거래 내역
- POST /points/admin/transactions/{transaction_id}/reverse: 거래 되돌리기
- GET /points/admin/integrity: 전체 정합성 검증
- GET /points/admin/integrity/{user_id}: 사용자 정합성 검증
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Path, Query

from loyaltyapi.core.auth_middleware import get_current_active_user, require_admin
from loyaltyapi.deps import get_ledger_service
from loyaltyapi.schemas.auth import BaseResponse
from loyaltyapi.schemas.points import AdminPointsGrantRequest, ReverseTransactionRequest
from loyaltyapi.schemas.user import User as UserSchema
from loyaltyapi.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/points", tags=["points"])


def _ledger_response(ledger, limit: int, offset: int) -> BaseResponse:
    return BaseResponse(
        success=True,
        data=ledger.model_dump(),
        meta={
            "limit": limit,
            "offset": offset,
            "total_count": ledger.total_count,
            "has_next": ledger.has_next,
        },
    )


@router.get("/balance", response_model=BaseResponse)
def get_my_balance(
    current_user: UserSchema = Depends(get_current_active_user),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> Any:
    """내 포인트 잔액 조회"""
    balance = ledger_service.get_balance(current_user.id)
    return BaseResponse(success=True, data=balance.model_dump())


@router.get("/ledger", response_model=BaseResponse)
def get_my_ledger(
    limit: int = Query(50, ge=1, le=100, description="페이지 크기"),
    offset: int = Query(0, ge=0, description="오프셋"),
    reason: Optional[str] = Query(None, description="사유 필터"),
    current_user: UserSchema = Depends(get_current_active_user),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> Any:
    """내 포인트 거래 내역 (최신순)"""
    ledger = ledger_service.get_history(
        current_user.id, limit=limit, offset=offset, reason=reason
    )
    return _ledger_response(ledger, limit, offset)


@router.get("/integrity/my", response_model=BaseResponse)
def verify_my_integrity(
    current_user: UserSchema = Depends(get_current_active_user),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> Any:
    result = ledger_service.verify_user_integrity(current_user.id)
    return BaseResponse(success=True, data=result.model_dump())


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.post("/admin/grant", response_model=BaseResponse)
def admin_grant_points(
    request: AdminPointsGrantRequest,
    current_user: UserSchema = Depends(require_admin),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> Any:
    """관리자 포인트 지급 (음수 amount = 차감)"""
    result = ledger_service.grant_points(current_user.id, request)
    logger.info(
        f"Admin {current_user.id} granted {request.amount} points to user {request.user_id}"
    )
    return BaseResponse(success=True, data=result.model_dump())


@router.get("/admin/balance/{user_id}", response_model=BaseResponse)
def admin_get_user_balance(
    user_id: int = Path(..., gt=0),
    _current_user: UserSchema = Depends(require_admin),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> Any:
    balance = ledger_service.get_balance(user_id)
    return BaseResponse(success=True, data=balance.model_dump())


@router.get("/admin/ledger/{user_id}", response_model=BaseResponse)
def admin_get_user_ledger(
    user_id: int = Path(..., gt=0),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    reason: Optional[str] = Query(None),
    _current_user: UserSchema = Depends(require_admin),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> Any:
    ledger = ledger_service.get_history(
        user_id, limit=limit, offset=offset, reason=reason
    )
    return _ledger_response(ledger, limit, offset)


@router.post("/admin/transactions/{transaction_id}/reverse", response_model=BaseResponse)
def admin_reverse_transaction(
    transaction_id: int = Path(..., gt=0),
    request: Optional[ReverseTransactionRequest] = Body(None),
    current_user: UserSchema = Depends(require_admin),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> Any:
    """원장 항목 되돌리기 (보상 레코드 추가)"""
    request = request or ReverseTransactionRequest()
    result = ledger_service.reverse_transaction(
        transaction_id,
        admin_id=current_user.id,
        notes=request.notes,
        idempotency_key=request.idempotency_key,
    )
    return BaseResponse(success=True, data=result.model_dump())


@router.get("/admin/integrity", response_model=BaseResponse)
def admin_verify_global_integrity(
    _current_user: UserSchema = Depends(require_admin),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> Any:
    result = ledger_service.verify_global_integrity()
    return BaseResponse(success=True, data=result.model_dump())


@router.get("/admin/integrity/{user_id}", response_model=BaseResponse)
def admin_verify_user_integrity(
    user_id: int = Path(..., gt=0),
    _current_user: UserSchema = Depends(require_admin),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> Any:
    result = ledger_service.verify_user_integrity(user_id)
    return BaseResponse(success=True, data=result.model_dump())
