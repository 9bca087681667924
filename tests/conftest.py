import os

# Must be set before gatewayapi.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from gatewayapi.core.auth_middleware import get_current_user
from gatewayapi.database.session import get_db
from gatewayapi.main import create_app
from gatewayapi.models import (
    Base,
    Checkout,
    CheckoutVariant,
    LevelDefinition,
    RewardDefinition,
    Transaction,
)
from gatewayapi.models.checkout import CheckoutStatus
from gatewayapi.models.transaction import (
    TransactionMethod,
    TransactionStatus,
    TransactionType,
)
from gatewayapi.repositories.user_repository import UserRepository
from gatewayapi.schemas.user import CurrentUser


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Let SQLAlchemy drive BEGIN so SAVEPOINTs behave on pysqlite
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSessionLocal = sessionmaker(
        bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def _make_user(db, email, is_admin=False):
    return UserRepository(db).create_user(
        email=email, name=email.split("@")[0], is_admin=is_admin
    )


@pytest.fixture
def user(db_session):
    return _make_user(db_session, "merchant@example.com")


@pytest.fixture
def other_user(db_session):
    return _make_user(db_session, "other@example.com")


@pytest.fixture
def admin_user(db_session):
    return _make_user(db_session, "admin@example.com", is_admin=True)


def as_current_user(user) -> CurrentUser:
    return CurrentUser(
        id=user.id, email=user.email, is_active=user.is_active, is_admin=user.is_admin
    )


@pytest.fixture
def app(db_session):
    app = create_app()

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(app):
    return TestClient(app)


@pytest.fixture
def client(app, user):
    """Client authenticated as `user`"""
    app.dependency_overrides[get_current_user] = lambda: as_current_user(user)
    return TestClient(app)


@pytest.fixture
def admin_client(app, admin_user):
    app.dependency_overrides[get_current_user] = lambda: as_current_user(admin_user)
    return TestClient(app)


# Factories


@pytest.fixture
def make_transaction(db_session):
    def _make(
        user,
        amount="100.00",
        type=TransactionType.INCOMING,
        status=TransactionStatus.PENDING,
        fee_amount="0.00",
        created_at=None,
    ):
        transaction = Transaction(
            user_id=user.id,
            amount=Decimal(amount),
            type=type,
            method=TransactionMethod.PIX,
            status=status,
            fee_amount=Decimal(fee_amount),
        )
        if created_at is not None:
            transaction.created_at = created_at
        db_session.add(transaction)
        db_session.commit()
        return transaction

    return _make


@pytest.fixture
def make_checkout(db_session):
    def _make(user, slug="summer-sale", status=CheckoutStatus.ACTIVE, deleted=False):
        checkout = Checkout(
            user_id=user.id,
            name=slug.replace("-", " ").title(),
            slug=slug,
            status=status,
            deleted_at=datetime.now(timezone.utc) if deleted else None,
        )
        db_session.add(checkout)
        db_session.commit()
        return checkout

    return _make


@pytest.fixture
def make_variant(db_session):
    def _make(checkout, name, traffic_share, active=True):
        variant = CheckoutVariant(
            checkout_id=checkout.id,
            name=name,
            traffic_share=traffic_share,
            active=active,
        )
        db_session.add(variant)
        db_session.commit()
        return variant

    return _make


@pytest.fixture
def make_reward(db_session):
    def _make(code, expires_after_days=None):
        reward = RewardDefinition(
            code=code,
            name=code.title(),
            type="FEE_DISCOUNT",
            expires_after_days=expires_after_days,
        )
        db_session.add(reward)
        db_session.commit()
        return reward

    return _make


@pytest.fixture
def make_level(db_session):
    def _make(code, order, threshold, rewards=()):
        level = LevelDefinition(code=code, name=code.title(), order=order, threshold=threshold)
        level.default_rewards = list(rewards)
        db_session.add(level)
        db_session.commit()
        return level

    return _make
