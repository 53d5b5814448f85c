"""
포인트 원장 서비스

주문/대회/투표/설문/리뷰 등 모든 정산 경로는 이 서비스의 apply_entry /
reverse_entry 를 통해서만 users.points 를 변경한다.

보장 사항:
1. 잔액 변경과 원장 기록은 하나의 SAVEPOINT 안에서 함께 반영되거나 함께 취소됨
2. 같은 idempotency_key 는 잔액을 두 번 바꾸지 않음
3. 차감은 잔액을 음수로 만들 수 없음 (조건부 UPDATE)

apply_entry / reverse_entry 는 커밋하지 않는다. 작업 단위의 커밋은
호출자(transactional 블록)가 담당한다.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from loyaltyapi.config import settings
from loyaltyapi.core.exceptions import (
    ConflictError,
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from loyaltyapi.database.session import transactional
from loyaltyapi.models.points import PointReason, PointTransaction
from loyaltyapi.repositories.points_repository import PointsRepository
from loyaltyapi.schemas.points import (
    AdminPointsGrantRequest,
    GlobalIntegrityCheckResponse,
    LedgerEntryResult,
    PointsBalanceResponse,
    PointsIntegrityCheckResponse,
    PointsLedgerResponse,
    PointTransactionEntry,
)

logger = logging.getLogger(__name__)


class LedgerService:
    """포인트 원장 비즈니스 로직"""

    def __init__(self, db: Session):
        self.db = db
        self.points_repo = PointsRepository(db)

    # ------------------------------------------------------------------
    # 쓰기
    # ------------------------------------------------------------------

    def apply_entry(
        self,
        user_id: int,
        amount: int,
        reason: str,
        idempotency_key: str,
        admin_id: Optional[int] = None,
        notes: Optional[str] = None,
        reversal_of_id: Optional[int] = None,
    ) -> LedgerEntryResult:
        """잔액 변경 + 원장 기록을 원자적으로 반영

        Args:
            user_id: 대상 사용자
            amount: 부호 있는 변화량 (0 불가)
            reason: PointReason 값 또는 그 `-reversal` 형태
            idempotency_key: 트리거 이벤트를 식별하는 유니크 키
            admin_id: 처리한 관리자 (선택)
            notes: 메모 (선택)
            reversal_of_id: 되돌리는 원본 레코드 (reverse_entry 전용)

        Returns:
            LedgerEntryResult: 이미 처리된 키라면 기존 결과 (replayed=True)

        Raises:
            ValidationError: 입력 오류
            NotFoundError: 사용자 없음
            InsufficientBalanceError: 차감 후 잔액이 음수
            ConflictError: 같은 키가 다른 사용자/금액으로 사용됨
        """
        reason_value = reason.value if isinstance(reason, PointReason) else reason
        self._validate_entry(user_id, amount, reason_value, idempotency_key)

        existing = self.points_repo.find_by_key(idempotency_key)
        if existing is not None:
            return self._replay(existing, user_id, amount)

        try:
            with self.db.begin_nested():
                updated = self.points_repo.apply_balance_delta(user_id, amount)
                if updated == 0:
                    self._raise_rejected_update(user_id, amount, idempotency_key)

                new_balance = self.points_repo.get_user_points(user_id)
                transaction = self.points_repo.insert_transaction(
                    user_id=user_id,
                    admin_id=admin_id,
                    amount=amount,
                    reason=reason_value,
                    idempotency_key=idempotency_key,
                    notes=notes,
                    balance_after=new_balance,
                    reversal_of_id=reversal_of_id,
                )
        except IntegrityError:
            # 동시에 같은 키가 먼저 기록됨 - SAVEPOINT 롤백으로 잔액 변경도 취소된 상태
            winner = self.points_repo.find_by_key(idempotency_key)
            if winner is None and reversal_of_id is not None:
                winner = self.points_repo.find_reversal_of(reversal_of_id)
            if winner is None:
                raise
            logger.info(
                f"Concurrent duplicate for key {idempotency_key}; returning existing transaction {winner.id}"
            )
            return self._replay(winner, user_id, amount)

        logger.info(
            f"Ledger entry {transaction.id}: user={user_id} amount={amount:+d} "
            f"reason={reason_value} key={idempotency_key} balance={new_balance}"
        )
        return LedgerEntryResult(
            transaction_id=transaction.id,
            user_id=user_id,
            amount=amount,
            new_balance=new_balance,
            replayed=False,
        )

    def reverse_entry(
        self,
        original_transaction_id: int,
        reason: Optional[str] = None,
        idempotency_key: Optional[str] = None,
        admin_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> LedgerEntryResult:
        """원본을 수정하지 않고 부호가 반대인 보상 레코드를 추가

        원본 하나는 한 번만 되돌릴 수 있으며, 이미 되돌려졌다면 기존 보상
        레코드를 replayed=True 로 반환한다.
        """
        original = self.points_repo.get_model(original_transaction_id)
        if original is None:
            raise NotFoundError(
                "Transaction not found",
                details={"transaction_id": original_transaction_id},
            )
        if original.reversal_of_id is not None or PointReason.is_reversal(
            original.reason
        ):
            raise ValidationError(
                "A reversal entry cannot itself be reversed",
                details={"transaction_id": original.id},
            )

        existing = self.points_repo.find_reversal_of(original.id)
        if existing is not None:
            return self._replay(existing, original.user_id, -original.amount)

        return self.apply_entry(
            user_id=original.user_id,
            amount=-original.amount,
            reason=reason or PointReason.reversal_of(original.reason),
            idempotency_key=idempotency_key or f"reversal:{original.id}",
            admin_id=admin_id,
            notes=notes,
            reversal_of_id=original.id,
        )

    def grant_points(
        self, admin_id: int, request: AdminPointsGrantRequest
    ) -> LedgerEntryResult:
        """관리자 포인트 지급/차감 (자체 트랜잭션으로 커밋)"""
        client_key = request.idempotency_key or uuid.uuid4().hex
        with transactional(self.db):
            result = self.apply_entry(
                user_id=request.user_id,
                amount=request.amount,
                reason=PointReason.ADMIN_GRANT,
                idempotency_key=f"admin-grant:{admin_id}:{client_key}",
                admin_id=admin_id,
                notes=request.notes,
            )
        return result

    def reverse_transaction(
        self,
        transaction_id: int,
        admin_id: int,
        notes: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> LedgerEntryResult:
        """관리자용 reverse_entry (자체 트랜잭션으로 커밋)"""
        with transactional(self.db):
            result = self.reverse_entry(
                transaction_id,
                idempotency_key=idempotency_key,
                admin_id=admin_id,
                notes=notes,
            )
        return result

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------

    def find_by_key(self, idempotency_key: str) -> Optional[PointTransactionEntry]:
        return self.points_repo._to_schema(
            self.points_repo.find_by_key(idempotency_key)
        )

    def get_balance(self, user_id: int) -> PointsBalanceResponse:
        balance = self.points_repo.get_user_points(user_id)
        if balance is None:
            raise NotFoundError("User not found", details={"user_id": user_id})
        return PointsBalanceResponse(user_id=user_id, balance=balance)

    def get_history(
        self,
        user_id: int,
        limit: int = 50,
        offset: int = 0,
        reason: Optional[str] = None,
    ) -> PointsLedgerResponse:
        """최신순 원장 조회 (limit 은 LEDGER_HISTORY_MAX_LIMIT 로 제한)"""
        if reason is not None and not PointReason.is_valid(reason):
            raise ValidationError("Unknown reason", details={"reason": reason})
        limit = max(1, min(limit, settings.LEDGER_HISTORY_MAX_LIMIT))
        offset = max(0, offset)

        balance = self.get_balance(user_id).balance
        entries, total_count = self.points_repo.get_user_history(
            user_id, limit=limit, offset=offset, reason=reason
        )
        return PointsLedgerResponse(
            balance=balance,
            entries=entries,
            total_count=total_count,
            has_next=offset + len(entries) < total_count,
        )

    def verify_user_integrity(self, user_id: int) -> PointsIntegrityCheckResponse:
        """users.points == 원장 합계 == 최신 balance_after 인지 검증"""
        balance = self.get_balance(user_id).balance
        ledger_sum, entry_count = self.points_repo.get_ledger_stats(user_id)
        latest = self.points_repo.get_latest_entry(user_id)
        latest_balance = latest.balance_after if latest is not None else None

        is_valid = ledger_sum == balance and (
            latest_balance == balance if latest is not None else balance == 0
        )
        if not is_valid:
            logger.warning(
                f"Ledger mismatch for user {user_id}: points={balance} "
                f"ledger_sum={ledger_sum} latest_balance_after={latest_balance}"
            )
        return PointsIntegrityCheckResponse(
            user_id=user_id,
            balance=balance,
            ledger_sum=ledger_sum,
            latest_balance_after=latest_balance,
            entry_count=entry_count,
            is_valid=is_valid,
        )

    def verify_global_integrity(self) -> GlobalIntegrityCheckResponse:
        total_users, total_balance, total_ledger = self.points_repo.get_global_totals()
        mismatched = self.points_repo.find_mismatched_user_ids()
        is_valid = total_balance == total_ledger and not mismatched
        if not is_valid:
            logger.warning(
                f"Global ledger mismatch: balance={total_balance} ledger={total_ledger} "
                f"users={mismatched}"
            )
        return GlobalIntegrityCheckResponse(
            total_users=total_users,
            total_balance=total_balance,
            total_ledger_sum=total_ledger,
            mismatched_user_ids=mismatched,
            is_valid=is_valid,
        )

    # ------------------------------------------------------------------
    # 내부 헬퍼
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_entry(
        user_id: int, amount: int, reason: str, idempotency_key: str
    ) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool) or amount == 0:
            raise ValidationError(
                "amount must be a non-zero integer", details={"amount": amount}
            )
        if not reason or not PointReason.is_valid(reason):
            raise ValidationError("Unknown reason", details={"reason": reason})
        if not idempotency_key or not idempotency_key.strip():
            raise ValidationError("idempotency_key is required")
        if not user_id:
            raise ValidationError("user_id is required")

    def _raise_rejected_update(
        self, user_id: int, amount: int, idempotency_key: str
    ) -> None:
        if not self.points_repo.user_exists(user_id):
            raise NotFoundError("User not found", details={"user_id": user_id})
        balance = self.points_repo.get_user_points(user_id)
        logger.warning(
            f"Rejected debit for user {user_id}: amount={amount} balance={balance} key={idempotency_key}"
        )
        raise InsufficientBalanceError(
            details={"user_id": user_id, "balance": balance, "required": -amount}
        )

    @staticmethod
    def _replay(
        existing: PointTransaction, user_id: int, amount: int
    ) -> LedgerEntryResult:
        if existing.user_id != user_id or existing.amount != amount:
            raise ConflictError(
                "Idempotency key already used for a different entry",
                details={
                    "idempotency_key": existing.idempotency_key,
                    "transaction_id": existing.id,
                },
            )
        logger.info(
            f"Idempotent replay of transaction {existing.id} (key={existing.idempotency_key})"
        )
        return LedgerEntryResult(
            transaction_id=existing.id,
            user_id=existing.user_id,
            amount=existing.amount,
            new_balance=existing.balance_after,
            replayed=True,
        )
