"""
Pytest configuration for all tests.
Sets up Python path to find the backend package and provides test keys,
an in-memory database and principals.
"""

import sys
import os
import base64
from datetime import datetime, timedelta, timezone

# Add backend directory to Python path
backend_path = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'backend'))
if backend_path not in sys.path:
    sys.path.insert(0, backend_path)

# Test configuration must exist before resq.config is imported
TEST_SIGNING_KEY = "test-signing-key-7c1f0e5a9b2d4c6e8f0a1b3c5d7e9f11"
TEST_ENCRYPTION_KEY = base64.b64encode(b"k" * 32).decode("ascii")
TEST_IDENTITY_SECRET = "test-identity-secret-3e8a1c5b7d9f2a4c6e8b0d1f3a5c7e9b"

os.environ.setdefault("RESQ_SIGNING_KEY", TEST_SIGNING_KEY)
os.environ.setdefault("RESQ_ENCRYPTION_KEY", TEST_ENCRYPTION_KEY)
os.environ.setdefault("IDENTITY_TOKEN_SECRET", TEST_IDENTITY_SECRET)
os.environ.setdefault("SECRET_KEY", "test-flask-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import jwt
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from resq.db.postgres import Base
from resq import models  # noqa: F401 - registers models with Base
from resq.services.access_gateway import AccessGateway
from resq.services.access_token import AccessTokenService
from resq.services.payload_codec import PayloadCodec
from resq.services.principal import Principal


class FakeClock:
    """Controllable UTC clock for token expiry tests."""

    def __init__(self, now=None):
        self.now = now or datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
def engine():
    """Fresh in-memory SQLite database with all tables."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    yield session
    session.close()


# =============================================================================
# Core services
# =============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def codec():
    return PayloadCodec(os.urandom(32))


@pytest.fixture
def tokens(clock):
    return AccessTokenService(TEST_SIGNING_KEY, clock=clock)


@pytest.fixture
def gateway(tokens, codec, db_session):
    return AccessGateway(tokens, codec, db_session=db_session)


# =============================================================================
# Principals
# =============================================================================

@pytest.fixture
def admin():
    return Principal(id="admin-1", role="admin", name="Ada Admin", is_verified=True)


@pytest.fixture
def doctor():
    return Principal(id="doctor-1", role="doctor", name="Dr. Grey")


@pytest.fixture
def nurse():
    return Principal(id="nurse-1", role="nurse", name="Nurse Joy")


@pytest.fixture
def patient():
    return Principal(id="P1", role="patient", name="Pat Patient")


@pytest.fixture
def identity_header():
    """Build an Authorization header as the external identity layer would."""
    def _build(principal, secret=TEST_IDENTITY_SECRET, token_type="access", expires_in=3600):
        token = jwt.encode(
            {
                "sub": principal.id,
                "role": principal.role,
                "name": principal.name,
                "is_verified": principal.is_verified,
                "type": token_type,
                "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            },
            secret,
            algorithm="HS256",
        )
        return {"Authorization": f"Bearer {token}"}
    return _build


# =============================================================================
# Flask application
# =============================================================================

@pytest.fixture
def app():
    """Application bound to a fresh in-memory database."""
    from resq.db.postgres import configure_engine, init_db
    from resq.services.access_gateway import reset_access_gateway
    from server import create_app

    engine = configure_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    init_db()
    reset_access_gateway()

    app = create_app()
    app.config["TESTING"] = True
    yield app

    reset_access_gateway()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(app):
    return app.test_client()
