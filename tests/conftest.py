import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from loyaltyapi import models  # noqa: E402,F401
from loyaltyapi.core.security import create_access_token  # noqa: E402
from loyaltyapi.database.connection import create_db_engine  # noqa: E402
from loyaltyapi.database.session import get_db  # noqa: E402
from loyaltyapi.models.base import Base  # noqa: E402
from loyaltyapi.models.contest import Contest  # noqa: E402
from loyaltyapi.models.points import PointReason  # noqa: E402
from loyaltyapi.models.product import Product  # noqa: E402
from loyaltyapi.models.user import User, UserRole  # noqa: E402
from loyaltyapi.models.voting import VoteEntry, VotingCampaign  # noqa: E402
from loyaltyapi.services.ledger_service import LedgerService  # noqa: E402
from loyaltyapi.utils.timezone_utils import now_utc  # noqa: E402


@pytest.fixture
def engine():
    """테스트마다 새로운 인메모리 SQLite 엔진"""
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(
        bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
    )()
    yield session
    session.close()


@pytest.fixture
def make_user(db_session):
    """사용자 생성 팩토리 - 초기 포인트는 원장(admin-grant)을 통해 지급"""
    counter = {"n": 0}

    def _make(points: int = 0, role: str = UserRole.USER.value, is_active: bool = True):
        counter["n"] += 1
        user = User(
            email=f"user{counter['n']}@example.com",
            nickname=f"user{counter['n']}",
            points=0,
            role=role,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        if points:
            LedgerService(db_session).apply_entry(
                user_id=user.id,
                amount=points,
                reason=PointReason.ADMIN_GRANT,
                idempotency_key=f"seed:{user.id}",
            )
            db_session.commit()
            db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def make_product(db_session):
    def _make(price: int = 500, stock: int = 10, points_reward: int = 0, name: str = "Tea"):
        product = Product(
            name=name,
            price=price,
            stock=stock,
            points_reward=points_reward,
            purchase_count=0,
            is_active=True,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture
def make_contest(db_session):
    def _make(points_per_answer: int = 10, reward_points: int = 50, **kwargs):
        now = now_utc()
        contest = Contest(
            title=kwargs.pop("title", "Guess the blend"),
            start_date=kwargs.pop("start_date", now - timedelta(days=1)),
            end_date=kwargs.pop("end_date", now + timedelta(days=1)),
            points_per_answer=points_per_answer,
            reward_points=reward_points,
            is_answer_published=False,
            **kwargs,
        )
        db_session.add(contest)
        db_session.commit()
        return contest

    return _make


@pytest.fixture
def make_campaign(db_session):
    """캠페인 + 승인된 후보 n 개 생성"""

    def _make(entries: int = 2, points_per_vote: int = 5, **kwargs):
        now = now_utc()
        campaign = VotingCampaign(
            title=kwargs.pop("title", "Best cup"),
            start_date=kwargs.pop("start_date", now - timedelta(days=1)),
            end_date=kwargs.pop("end_date", now + timedelta(days=1)),
            points_per_vote=points_per_vote,
            **kwargs,
        )
        db_session.add(campaign)
        db_session.flush()
        for i in range(entries):
            db_session.add(
                VoteEntry(campaign_id=campaign.id, title=f"Entry {i + 1}", vote_count=0)
            )
        db_session.commit()
        return campaign

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user) -> dict:
        token = create_access_token({"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def client(db_session):
    """테스트 DB 세션을 주입한 TestClient"""
    from loyaltyapi.main import create_app

    app = create_app()

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
