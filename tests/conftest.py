"""
Pytest configuration and fixtures
"""
import pytest
import os
import sys
from pathlib import Path
from unittest.mock import Mock

from fastapi.testclient import TestClient

# Add src to path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Set test environment variables before importing
os.environ["ENV"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key-for-integration-tests-only-min-32-chars"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("REDIS_URL", None)
os.environ["CORS_ORIGINS"] = "http://localhost:3000,https://test.example.com"
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce log noise in tests

# Import after setting env vars
from course_shop.app import create_app
from course_shop.auth import CredentialIssuer, create_access_token
from course_shop.config import load_config
from course_shop.db import Role, UserStore, CourseStore
from course_shop.services.billing_gateway import MonobankGateway, PaymentGateway
from course_shop.services.email_provider import EmailProvider
from course_shop.services.file_access import FileAccessService
from course_shop.services.identity_provider import IdentityProvider

TEST_PASSWORD = "Secret123"


@pytest.fixture
def config():
    """Test configuration with an in-memory database and fast hashing"""
    return load_config(
        ENV="test",
        DATABASE_URL="sqlite://",
        REDIS_URL=None,
        BCRYPT_ROUNDS=4,
        MAX_REQUESTS_PER_HOUR=1000,
    )


@pytest.fixture
def email_provider():
    return Mock(spec=EmailProvider)


@pytest.fixture
def payment_gateway():
    gateway = Mock(spec=PaymentGateway)
    gateway.create_invoice.return_value = {
        "invoice_id": "inv_123",
        "page_url": "https://pay.example.com/inv_123",
    }
    gateway.parse_webhook_event.side_effect = MonobankGateway(token="test").parse_webhook_event
    return gateway


@pytest.fixture
def file_access():
    service = Mock(spec=FileAccessService)
    service.grant_read.return_value = "perm_1"
    return service


@pytest.fixture
def identity_provider():
    provider = Mock(spec=IdentityProvider)
    provider.name = "google"
    return provider


@pytest.fixture
def app(config, email_provider, payment_gateway, file_access, identity_provider):
    """Fresh app per test; each gets its own in-memory database"""
    return create_app(
        config,
        email_provider=email_provider,
        payment_gateway=payment_gateway,
        file_access=file_access,
        identity_provider=identity_provider,
    )


@pytest.fixture
def client(app):
    """Create test client"""
    return TestClient(app)


@pytest.fixture
def db_session(app):
    """Session on the app's database"""
    session = app.state.session_factory()
    yield session
    session.close()


@pytest.fixture
def issuer(db_session, config):
    return CredentialIssuer(db_session, config)


@pytest.fixture
def test_user(db_session, issuer):
    """Create a test user"""
    return UserStore(db_session).create(
        email="test@example.com",
        user_name="Test User",
        hashed_password=issuer.hash_password(TEST_PASSWORD),
        role=Role.USER.value,
    )


@pytest.fixture
def admin_user(db_session, issuer):
    return UserStore(db_session).create(
        email="admin@example.com",
        user_name="Admin",
        hashed_password=issuer.hash_password(TEST_PASSWORD),
        role=Role.ADMIN.value,
    )


@pytest.fixture
def course(db_session):
    return CourseStore(db_session).create(
        name_en="Classic haircut",
        name_uk="Класична стрижка",
        description_en="Scissors and clipper basics",
        price={"uah": 150000, "usd": 4000},
        duration=12,
        difficulty="beginner",
        file_id="file_abc",
    )


def bearer(user, config) -> dict:
    token = create_access_token(user.id, config.SECRET_KEY, config.ACCESS_TOKEN_EXPIRE_MINUTES)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(test_user, config):
    """Authorization header for the test user"""
    return bearer(test_user, config)


@pytest.fixture
def admin_headers(admin_user, config):
    return bearer(admin_user, config)
