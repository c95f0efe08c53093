import os

# 앱 모듈 import 전에 설정 (전역 엔진이 PostgreSQL 드라이버로 접속하지 않도록)
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_ENABLED", "false")

import pytest
from sqlalchemy.orm import sessionmaker

from consultapi.config import Settings
from consultapi.database.connection import build_engine
from consultapi.database.schema import create_all
from consultapi.models.consultant import Consultant
from consultapi.models.consultation import ConsultationRequest
from consultapi.models.usage import TierLimit
from consultapi.models.user import User, UserRole
from consultapi.repositories.order_repository import OrderRepository
from consultapi.schemas.user import User as UserSchema


@pytest.fixture
def engine(tmp_path):
    """테스트마다 새 SQLite 파일 DB"""
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(
        bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
    )


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def test_settings():
    return Settings(
        DATABASE_URL="sqlite://",
        PLATFORM_FEE_BPS=3000,
        DEFAULT_CURRENCY="KWD",
        QUOTA_FALLBACK_ENABLED=False,
        REDIS_ENABLED=False,
    )


def make_user(db, email, role=UserRole.USER.value, tier="free") -> UserSchema:
    user = User(email=email, role=role, tier=tier, is_active=True)
    db.add(user)
    db.commit()
    return UserSchema.model_validate(user)


def make_consultant(db, user_id=None, **fields) -> Consultant:
    values = {
        "name": "Advisor",
        "specialty": "legal",
        "specialties": None,
        "languages": None,
        "availability": None,
        "experience_years": 0,
        "rating_avg": 0,
        "status": "active",
    }
    values.update(fields)
    consultant = Consultant(user_id=user_id, **values)
    db.add(consultant)
    db.commit()
    return consultant


def make_request(db, user_id, status="pending_advisor", **fields) -> ConsultationRequest:
    values = {
        "user_tier_snapshot": "free",
        "priority_weight": 0,
        "discount_rate_bps": 0,
        "summary": "Contract review",
    }
    values.update(fields)
    request = ConsultationRequest(user_id=user_id, status=status, **values)
    db.add(request)
    db.commit()
    return request


def make_tier_limit(db, tier, **fields) -> TierLimit:
    values = {
        "general_chat_daily_limit": None,
        "advisor_chat_daily_limit": None,
        "contract_access_level": "locked",
        "discount_rate_bps": 0,
        "priority_weight": 0,
    }
    values.update(fields)
    row = TierLimit(tier=tier, **values)
    db.add(row)
    db.commit()
    return row


def confirm_order_externally(session_factory, request_id):
    """외부 결제 게이트웨이 피드 흉내: 별도 세션에서 주문을 completed로 변경"""
    other = session_factory()
    try:
        repo = OrderRepository(other)
        order = repo.get_for_request(request_id)
        assert order is not None
        assert repo.mark_completed(order.id, gateway_reference="GW-TEST")
        other.commit()
        return order.id
    finally:
        other.close()


@pytest.fixture
def requester(db):
    return make_user(db, "requester@example.com", tier="pro")


@pytest.fixture
def advisor_user(db):
    return make_user(db, "advisor@example.com", role=UserRole.ADVISOR.value)


@pytest.fixture
def admin_user(db):
    return make_user(db, "admin@example.com", role=UserRole.ADMIN.value)


@pytest.fixture
def advisor(db, advisor_user):
    return make_consultant(
        db, user_id=advisor_user.id, name="Primary Advisor", rating_avg=450, experience_years=6
    )
