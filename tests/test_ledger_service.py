import threading
import time

import pytest
from sqlalchemy.orm import sessionmaker

from loyaltyapi.core.exceptions import (
    ConflictError,
    InsufficientBalanceError,
    NotFoundError,
    TransactionAbortedError,
    ValidationError,
)
from loyaltyapi.database.connection import create_db_engine
from loyaltyapi.database.session import transactional
from loyaltyapi.models.base import Base
from loyaltyapi.models.points import PointReason, PointTransaction
from loyaltyapi.models.user import User
from loyaltyapi.schemas.points import AdminPointsGrantRequest
from loyaltyapi.services.ledger_service import LedgerService


@pytest.fixture
def ledger(db_session):
    return LedgerService(db_session)


def _entries(db_session, user_id):
    return (
        db_session.query(PointTransaction)
        .filter(PointTransaction.user_id == user_id)
        .order_by(PointTransaction.id)
        .all()
    )


class TestApplyEntry:
    """apply_entry 테스트"""

    def test_credit_updates_balance_and_records_entry(self, db_session, ledger, make_user):
        """적립 시 잔액과 원장이 함께 반영됨"""
        # Given
        user = make_user()

        # When
        result = ledger.apply_entry(user.id, 100, PointReason.CHECK_IN, "check-in:1")
        db_session.commit()

        # Then
        assert result.new_balance == 100
        assert result.replayed is False
        entries = _entries(db_session, user.id)
        assert len(entries) == 1
        assert entries[0].balance_after == 100
        assert entries[0].reason == "check-in"

    def test_same_key_is_applied_once(self, db_session, ledger, make_user):
        """같은 idempotency_key 는 한 번만 반영"""
        user = make_user()
        first = ledger.apply_entry(user.id, 30, PointReason.FEEDBACK, "feedback:7")
        db_session.commit()

        second = ledger.apply_entry(user.id, 30, PointReason.FEEDBACK, "feedback:7")
        db_session.commit()

        assert second.replayed is True
        assert second.transaction_id == first.transaction_id
        assert second.new_balance == 30
        assert ledger.get_balance(user.id).balance == 30
        assert len(_entries(db_session, user.id)) == 1

    def test_same_key_with_different_amount_conflicts(self, db_session, ledger, make_user):
        user = make_user()
        ledger.apply_entry(user.id, 30, PointReason.FEEDBACK, "feedback:8")
        db_session.commit()

        with pytest.raises(ConflictError):
            ledger.apply_entry(user.id, 40, PointReason.FEEDBACK, "feedback:8")

    def test_same_key_for_other_user_conflicts(self, db_session, ledger, make_user):
        alice, bob = make_user(), make_user()
        ledger.apply_entry(alice.id, 30, PointReason.REFERRAL, "referral:1")
        db_session.commit()

        with pytest.raises(ConflictError):
            ledger.apply_entry(bob.id, 30, PointReason.REFERRAL, "referral:1")

    def test_debit_beyond_balance_is_rejected(self, db_session, ledger, make_user):
        """잔액 부족 차감은 아무것도 기록하지 않음"""
        # Given
        user = make_user(points=50)

        # When / Then
        with pytest.raises(InsufficientBalanceError) as exc_info:
            ledger.apply_entry(user.id, -80, PointReason.ADMIN_GRANT, "debit:1")
        db_session.commit()

        assert exc_info.value.detail["error"]["code"] == "BALANCE_001"
        assert ledger.get_balance(user.id).balance == 50
        assert len(_entries(db_session, user.id)) == 1

    def test_debit_to_exactly_zero_is_allowed(self, db_session, ledger, make_user):
        user = make_user(points=50)
        result = ledger.apply_entry(user.id, -50, PointReason.ADMIN_GRANT, "debit:2")
        db_session.commit()
        assert result.new_balance == 0

    def test_unknown_user(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.apply_entry(999, 10, PointReason.CHECK_IN, "check-in:999")

    @pytest.mark.parametrize(
        "amount, reason, key",
        [
            (0, "check-in", "k:1"),
            (10, "lottery", "k:2"),
            (10, "check-in", "  "),
        ],
    )
    def test_invalid_input(self, ledger, make_user, amount, reason, key):
        user = make_user()
        with pytest.raises(ValidationError):
            ledger.apply_entry(user.id, amount, reason, key)


class TestReverseEntry:
    """reverse_entry 테스트"""

    def test_reversal_restores_balance(self, db_session, ledger, make_user):
        # Given
        user = make_user()
        credit = ledger.apply_entry(user.id, 70, PointReason.PREDICTION_WIN, "win:1")
        db_session.commit()

        # When
        reversal = ledger.reverse_entry(credit.transaction_id)
        db_session.commit()

        # Then
        assert reversal.amount == -70
        assert reversal.new_balance == 0
        entries = _entries(db_session, user.id)
        assert entries[-1].reason == "prediction-win-reversal"
        assert entries[-1].reversal_of_id == credit.transaction_id
        # 원본은 수정되지 않음
        assert entries[0].amount == 70

    def test_second_reversal_returns_existing(self, db_session, ledger, make_user):
        user = make_user()
        credit = ledger.apply_entry(user.id, 70, PointReason.PREDICTION_WIN, "win:2")
        db_session.commit()
        first = ledger.reverse_entry(credit.transaction_id)
        db_session.commit()

        second = ledger.reverse_entry(credit.transaction_id, idempotency_key="other-key")
        db_session.commit()

        assert second.replayed is True
        assert second.transaction_id == first.transaction_id
        assert ledger.get_balance(user.id).balance == 0

    def test_reversal_of_reversal_is_rejected(self, db_session, ledger, make_user):
        user = make_user()
        credit = ledger.apply_entry(user.id, 10, PointReason.CHECK_IN, "check-in:r")
        reversal = ledger.reverse_entry(credit.transaction_id)
        db_session.commit()

        with pytest.raises(ValidationError):
            ledger.reverse_entry(reversal.transaction_id)

    def test_reversal_needs_balance(self, db_session, ledger, make_user):
        """이미 사용한 적립분은 되돌릴 수 없음"""
        user = make_user()
        credit = ledger.apply_entry(user.id, 40, PointReason.VOTE, "vote:x")
        ledger.apply_entry(user.id, -30, PointReason.ORDER_POINTS_REDEMPTION, "spend:x")
        db_session.commit()

        with pytest.raises(InsufficientBalanceError):
            ledger.reverse_entry(credit.transaction_id)

    def test_missing_original(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.reverse_entry(12345)


class TestLedgerQueries:
    def test_history_is_newest_first_and_paginated(self, db_session, ledger, make_user):
        user = make_user()
        for i in range(5):
            ledger.apply_entry(user.id, i + 1, PointReason.CHECK_IN, f"check-in:{i}")
        db_session.commit()

        page = ledger.get_history(user.id, limit=2, offset=0)

        assert page.balance == 15
        assert page.total_count == 5
        assert page.has_next is True
        assert [e.amount for e in page.entries] == [5, 4]

    def test_history_reason_filter(self, db_session, ledger, make_user):
        user = make_user()
        ledger.apply_entry(user.id, 5, PointReason.CHECK_IN, "check-in:a")
        ledger.apply_entry(user.id, 9, PointReason.FEEDBACK, "feedback:a")
        db_session.commit()

        page = ledger.get_history(user.id, reason="feedback")

        assert page.total_count == 1
        assert page.entries[0].amount == 9

    def test_history_rejects_unknown_reason(self, ledger, make_user):
        user = make_user()
        with pytest.raises(ValidationError):
            ledger.get_history(user.id, reason="jackpot")

    def test_integrity_checks(self, db_session, ledger, make_user):
        """잔액 == 원장 합계 == 최신 balance_after"""
        user = make_user(points=100)
        ledger.apply_entry(user.id, -40, PointReason.ADMIN_GRANT, "debit:i")
        db_session.commit()

        check = ledger.verify_user_integrity(user.id)
        assert check.is_valid is True
        assert check.ledger_sum == 60
        assert check.latest_balance_after == 60

        # 원장을 우회한 잔액 변경은 불일치로 검출
        user.points = 999
        db_session.commit()
        assert ledger.verify_user_integrity(user.id).is_valid is False
        report = ledger.verify_global_integrity()
        assert report.is_valid is False
        assert user.id in report.mismatched_user_ids


class TestGrantPoints:
    def test_admin_grant_with_client_key_is_idempotent(self, ledger, make_user):
        admin = make_user(role="admin")
        user = make_user()
        request = AdminPointsGrantRequest(
            user_id=user.id, amount=25, notes="welcome", idempotency_key="req-1"
        )

        first = ledger.grant_points(admin.id, request)
        second = ledger.grant_points(admin.id, request)

        assert first.replayed is False
        assert second.replayed is True
        assert ledger.get_balance(user.id).balance == 25

    def test_admin_reverse_transaction(self, ledger, make_user):
        admin = make_user(role="admin")
        user = make_user()
        granted = ledger.grant_points(
            admin.id, AdminPointsGrantRequest(user_id=user.id, amount=25)
        )

        result = ledger.reverse_transaction(granted.transaction_id, admin_id=admin.id)

        assert result.amount == -25
        assert ledger.get_balance(user.id).balance == 0


class TestConcurrentDebits:
    """동시 차감 테스트 - 스레드마다 별도 세션/커넥션 (파일 기반 SQLite)"""

    WORKERS = 8
    DEBIT = 30
    START_BALANCE = 100

    @pytest.fixture
    def file_engine(self, tmp_path):
        engine = create_db_engine(
            f"sqlite:///{tmp_path / 'ledger.db'}", connect_args={"timeout": 30}
        )
        Base.metadata.create_all(bind=engine)
        yield engine
        engine.dispose()

    @staticmethod
    def _debit_with_retry(session, user_id: int, key: str, amount: int) -> str:
        """잠금 경합으로 중단된 트랜잭션은 재시도, 결과는 applied / rejected"""
        for _ in range(100):
            try:
                with transactional(session):
                    LedgerService(session).apply_entry(
                        user_id, -amount, PointReason.ORDER_POINTS_REDEMPTION, key
                    )
                return "applied"
            except InsufficientBalanceError:
                return "rejected"
            except TransactionAbortedError:
                time.sleep(0.01)
        return "gave-up"

    def test_racing_debits_never_overdraw(self, file_engine):
        # Given
        make_session = sessionmaker(
            bind=file_engine, autoflush=False, expire_on_commit=False
        )
        with make_session() as session:
            user = User(email="racer@example.com", nickname="racer", points=0)
            session.add(user)
            session.commit()
            LedgerService(session).apply_entry(
                user.id, self.START_BALANCE, PointReason.ADMIN_GRANT, "seed:racer"
            )
            session.commit()
            user_id = user.id

        barrier = threading.Barrier(self.WORKERS)
        outcomes = []
        outcomes_lock = threading.Lock()

        def worker(index: int) -> None:
            with make_session() as session:
                barrier.wait()
                outcome = self._debit_with_retry(
                    session, user_id, f"race:{index}", self.DEBIT
                )
            with outcomes_lock:
                outcomes.append(outcome)

        # When
        threads = [
            threading.Thread(target=worker, args=(i,)) for i in range(self.WORKERS)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        # Then
        expected_applied = self.START_BALANCE // self.DEBIT
        assert len(outcomes) == self.WORKERS
        assert outcomes.count("applied") == expected_applied
        assert outcomes.count("rejected") == self.WORKERS - expected_applied

        with make_session() as session:
            ledger = LedgerService(session)
            balance = ledger.get_balance(user_id).balance
            check = ledger.verify_user_integrity(user_id)
        assert balance == self.START_BALANCE - expected_applied * self.DEBIT
        assert balance >= 0
        assert check.is_valid is True
        assert check.ledger_sum == balance
