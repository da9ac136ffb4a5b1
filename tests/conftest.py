import os

# 테스트는 PostgreSQL 없이 인메모리 SQLite로 실행
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from findme.config import Settings
from findme.models import (
    Base,
    Reward,
    RewardCategory,
    RewardStatus,
    User,
    UserRole,
)
from findme.services.point_service import PointService
from findme.services.reward_service import RewardService


@pytest.fixture
def engine():
    """테스트마다 새로 만드는 인메모리 SQLite 엔진"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSessionLocal = sessionmaker(
        bind=engine, autoflush=False, expire_on_commit=False
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def test_settings():
    return Settings(_env_file=None)


@pytest.fixture
def point_service(db_session, test_settings):
    return PointService(db_session, settings=test_settings)


@pytest.fixture
def reward_service(db_session, point_service, test_settings):
    return RewardService(
        db_session, point_service=point_service, settings=test_settings
    )


@pytest.fixture
def make_user(db_session):
    """사용자 팩토리"""
    created = []

    def _make(role: UserRole = UserRole.USER, is_active: bool = True) -> User:
        seq = len(created) + 1
        user = User(
            email=f"user{seq}@example.com",
            name=f"Test User {seq}",
            role=role.value,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        created.append(user)
        return user

    return _make


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin_user(make_user):
    return make_user(role=UserRole.ADMIN)


@pytest.fixture
def make_category(db_session):
    """카테고리 팩토리"""

    def _make(name: str = "Food & Beverage") -> RewardCategory:
        category = RewardCategory(
            name=name, description=f"{name} vouchers", icon="gift"
        )
        db_session.add(category)
        db_session.commit()
        return category

    return _make


@pytest.fixture
def category(make_category):
    return make_category()


@pytest.fixture
def make_reward(db_session, category):
    """리워드 팩토리 (기본: 50포인트, 재고 100, 활성)"""

    def _make(
        points_required: int = 50,
        stock_quantity: int = 100,
        redeemed_count: int = 0,
        status: RewardStatus = RewardStatus.ACTIVE,
        name: str = "Coffee Voucher",
        validity_days: int = 30,
        voucher_code_prefix=None,
        category_id=None,
    ) -> Reward:
        reward = Reward(
            category_id=category_id or category.id,
            name=name,
            description=f"{name} description",
            points_required=points_required,
            stock_quantity=stock_quantity,
            redeemed_count=redeemed_count,
            voucher_code_prefix=voucher_code_prefix,
            validity_days=validity_days,
            status=status.value,
        )
        db_session.add(reward)
        db_session.commit()
        return reward

    return _make
