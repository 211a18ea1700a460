import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Generator

# Override settings for tests before importing app modules
TEST_DATABASE_URL = "sqlite:///:memory:"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only"
os.environ["NOTIFICATIONS_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.main import app
from app.models.database import Base, get_db
from app.models.order import Order
from app.models.user import ROLE_ADMIN, ROLE_USER, User
from app.services.order_store import OrderStore
from app.services.payment_ledger import PaymentLedger
from app.services.reconciliation import Caller, ReconciliationService

# Create test database engine
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db_session = TestSessionLocal()
    try:
        yield db_session
    finally:
        db_session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _create_user(db: Session, email: str, display_name: str, role: str) -> User:
    user = User(email=email, display_name=display_name, role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def test_user(db: Session) -> User:
    """Create a customer."""
    return _create_user(db, "test@example.com", "Test User", ROLE_USER)


@pytest.fixture
def test_user2(db: Session) -> User:
    """Create a second customer."""
    return _create_user(db, "test2@example.com", "Test User 2", ROLE_USER)


@pytest.fixture
def admin_user(db: Session) -> User:
    """Create an administrator."""
    return _create_user(db, "admin@example.com", "Admin", ROLE_ADMIN)


@pytest.fixture
def admin_user2(db: Session) -> User:
    """Create a second administrator."""
    return _create_user(db, "admin2@example.com", "Admin 2", ROLE_ADMIN)


@pytest.fixture
def make_order(db: Session) -> Callable[..., Order]:
    """Factory for orders owned by a given user."""
    counter = {"n": 0}

    def _make_order(
        user: User,
        total_amount: Decimal | str = "2500",
        payment_status: str = "pending",
    ) -> Order:
        counter["n"] += 1
        order = Order(
            user_id=user.id,
            order_number=f"ORD-{counter['n']:05d}",
            total_amount=Decimal(str(total_amount)),
            payment_status=payment_status,
            payment_method="mpesa",
        )
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    return _make_order


@pytest.fixture
def test_order(make_order, test_user) -> Order:
    """A pending order of 2500 owned by test_user."""
    return make_order(test_user)


@pytest.fixture
def service(db: Session) -> ReconciliationService:
    return ReconciliationService(orders=OrderStore(db), ledger=PaymentLedger(db))


@pytest.fixture
def user_caller(test_user: User) -> Caller:
    return Caller(id=test_user.id, role=test_user.role)


@pytest.fixture
def admin_caller(admin_user: User) -> Caller:
    return Caller(id=admin_user.id, role=admin_user.role)


def create_token(user_id: int, expires_delta: timedelta = timedelta(hours=1), token_type: str = "access") -> str:
    payload = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + expires_delta,
        "type": token_type,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def auth_headers(test_user: User) -> dict[str, str]:
    """Auth headers for test_user."""
    return {"Authorization": f"Bearer {create_token(test_user.id)}"}


@pytest.fixture
def auth_headers2(test_user2: User) -> dict[str, str]:
    """Auth headers for test_user2."""
    return {"Authorization": f"Bearer {create_token(test_user2.id)}"}


@pytest.fixture
def admin_headers(admin_user: User) -> dict[str, str]:
    """Auth headers for admin_user."""
    return {"Authorization": f"Bearer {create_token(admin_user.id)}"}
