"""
Pytest configuration for testing
"""

import os
import uuid

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set up environment variables for testing before any imports
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-jwt-secret-for-testing-only"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["STRIPE_PRICE_ID_MONTHLY"] = "price_monthly_test"
os.environ["STRIPE_PRICE_ID_YEARLY"] = "price_yearly_test"
os.environ["FREE_WEEKLY_IMAGE_LIMIT"] = "3"
os.environ["QUOTA_LOCK_ENABLED"] = "false"
os.environ["DEBUG"] = "false"

# 2025-10-09T08:53:20Z
NOW_MS = 1_760_000_000_000
DAY_MS = 24 * 60 * 60 * 1000
WEEK_MS = 7 * DAY_MS


@pytest.fixture
def clock():
    from vellume.core.clock import FixedClock
    return FixedClock(NOW_MS)


@pytest.fixture(scope="function")
def db_engine():
    """In-memory SQLite engine with the full schema"""
    from vellume.core.database import Base
    import vellume.models  # noqa: F401

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Create a new database session for a test"""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSessionLocal()

    yield session

    session.rollback()
    session.close()


@pytest.fixture
def make_user(db_session):
    """Insert a user row and return it"""
    from vellume.models.user import User

    def _make_user(email: str = None, name: str = "Test User") -> User:
        user = User(
            id=str(uuid.uuid4()),
            email=email or f"{uuid.uuid4().hex[:8]}@example.com",
            name=name,
            password_hash="not-a-real-hash",
            created_at=NOW_MS,
            updated_at=NOW_MS,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_subscription(db_session):
    """Insert a subscription row for a user"""
    from vellume.models.subscription import Subscription

    def _make_subscription(
        user_id: str,
        status: str = "active",
        plan: str = "premium_monthly",
        customer_id: str = None,
        subscription_id: str = None,
        current_period_end: int = None,
    ) -> Subscription:
        subscription = Subscription(
            id=str(uuid.uuid4()),
            user_id=user_id,
            stripe_customer_id=customer_id,
            stripe_subscription_id=subscription_id,
            plan=plan,
            status=status,
            current_period_end=current_period_end,
            created_at=NOW_MS,
            updated_at=NOW_MS,
        )
        db_session.add(subscription)
        db_session.commit()
        return subscription

    return _make_subscription


@pytest.fixture
def add_usage(db_session):
    """Insert usage events directly, bypassing the ledger"""
    from vellume.models.usage_event import UsageEvent

    def _add_usage(user_id: str, count: int = 1, action: str = "image_generated", created_at: int = NOW_MS - DAY_MS):
        for _ in range(count):
            db_session.add(UsageEvent(
                id=str(uuid.uuid4()),
                user_id=user_id,
                action=action,
                created_at=created_at,
            ))
        db_session.commit()

    return _add_usage


class FakeImageBackend:
    """Image backend that fails a set number of times, then returns `output`."""

    def __init__(self, output=b"\x89PNG fake image", failures: int = 0, error: Exception = None):
        self.output = output
        self.failures = failures
        self.error = error or RuntimeError("backend unavailable")
        self.calls = 0
        self.prompts = []

    async def generate(self, prompt: str):
        self.calls += 1
        self.prompts.append(prompt)
        if self.calls <= self.failures:
            raise self.error
        return self.output


class RecordingSleep:
    """Async sleep replacement that records the requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float):
        self.delays.append(seconds)


@pytest.fixture
def image_backend():
    return FakeImageBackend()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
