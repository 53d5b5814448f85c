from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class LedgerEntryResult(BaseModel):
    """원장 반영 결과"""

    transaction_id: int = Field(..., description="원장 레코드 ID")
    user_id: int = Field(..., description="사용자 ID")
    amount: int = Field(..., description="포인트 변화량 (부호 포함)")
    new_balance: int = Field(..., description="반영 후 잔액")
    replayed: bool = Field(False, description="이미 처리된 키로 인한 멱등 재응답 여부")


class PointTransactionEntry(BaseModel):
    """포인트 원장 항목"""

    id: int = Field(..., description="원장 항목 ID")
    user_id: int = Field(..., description="사용자 ID")
    admin_id: Optional[int] = Field(None, description="처리한 관리자 ID")
    amount: int = Field(..., description="포인트 변화량")
    reason: str = Field(..., description="변동 사유")
    idempotency_key: str = Field(..., description="멱등성 키")
    notes: Optional[str] = Field(None, description="메모")
    balance_after: int = Field(..., description="트랜잭션 후 잔액")
    reversal_of_id: Optional[int] = Field(None, description="되돌린 원본 항목 ID")
    created_at: Optional[datetime] = Field(None, description="생성 시간")

    class Config:
        from_attributes = True


class PointsBalanceResponse(BaseModel):
    """포인트 잔액 응답"""

    user_id: int = Field(..., description="사용자 ID")
    balance: int = Field(..., description="현재 포인트 잔액")


class PointsLedgerResponse(BaseModel):
    """포인트 원장 조회 응답"""

    balance: int = Field(..., description="현재 잔액")
    entries: List[PointTransactionEntry] = Field(..., description="원장 항목 목록")
    total_count: int = Field(..., description="전체 항목 수")
    has_next: bool = Field(..., description="다음 페이지 존재 여부")


class AdminPointsGrantRequest(BaseModel):
    """관리자 포인트 지급/차감 요청 (음수 = 차감)"""

    user_id: int = Field(..., gt=0, description="대상 사용자 ID")
    amount: int = Field(..., description="포인트 변화량 (0 불가)")
    notes: Optional[str] = Field(None, max_length=500, description="사유 메모")
    idempotency_key: Optional[str] = Field(
        None, min_length=1, max_length=200, description="클라이언트 재시도용 키"
    )

    @field_validator("amount")
    @classmethod
    def amount_must_not_be_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("amount must be non-zero")
        return v


class ReverseTransactionRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=500, description="취소 사유")
    idempotency_key: Optional[str] = Field(
        None, min_length=1, max_length=200, description="재시도용 키"
    )


class PointsIntegrityCheckResponse(BaseModel):
    """사용자 단위 정합성 검증 결과"""

    user_id: int
    balance: int = Field(..., description="users.points")
    ledger_sum: int = Field(..., description="원장 amount 합계")
    latest_balance_after: Optional[int] = Field(
        None, description="가장 최근 원장 레코드의 balance_after"
    )
    entry_count: int
    is_valid: bool


class GlobalIntegrityCheckResponse(BaseModel):
    """전체 정합성 검증 결과"""

    total_users: int
    total_balance: int
    total_ledger_sum: int
    mismatched_user_ids: List[int]
    is_valid: bool
