"""
Shared test configuration.

Every test gets a fresh in-memory SQLite database wired in through the
get_db dependency, a TestClient that does not run the app lifespan, and a
fake Stripe client in place of the real one.
"""

import os

# Settings are read at import time, so they must be in place before `app` loads
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SECURITY_HEADERS_ENABLED", "true")
os.environ["RESEND_API_KEY"] = ""
os.environ.pop("REDIS_URL", None)
os.environ.pop("STRIPE_WEBHOOK_SECRET", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.database import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.rate_limiter import reset_rate_limits  # noqa: E402
from app.services.stripe_client import get_stripe_client  # noqa: E402
from tests.support import FakeStripeClient, auth_headers, make_user  # noqa: E402


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def fake_stripe():
    return FakeStripeClient()


@pytest.fixture
def client(db_session, fake_stripe):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_stripe_client] = lambda: fake_stripe
    reset_rate_limits()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        reset_rate_limits()


@pytest.fixture
def homeowner(db_session):
    return make_user(db_session, "homeowner1", "homeowner", first_name="Hana", last_name="Owens")


@pytest.fixture
def cleaner(db_session):
    return make_user(db_session, "cleaner1", "cleaner", first_name="Cody", last_name="Lane")


@pytest.fixture
def owner(db_session):
    return make_user(db_session, "boss", "owner", email="boss@kleanr.com")


@pytest.fixture
def homeowner_headers(homeowner):
    return auth_headers(homeowner)


@pytest.fixture
def cleaner_headers(cleaner):
    return auth_headers(cleaner)


@pytest.fixture
def owner_headers(owner):
    return auth_headers(owner)
