"""
Shared test fixtures for the Link2Pay API test suite
In-memory SQLite database, dependency overrides and mocked outbound providers
"""

import os

# Test environment configuration, applied before the app reads its config
test_env_vars = {
    "DATABASE_URL": "sqlite://",
    "RATE_LIMIT_ENABLED": "false",
    "DB_LOG_SLOW_QUERIES": "false",
    "SECRET_KEY": "test-secret-key",
    "SUPABASE_JWT_SECRET": "test-jwt-secret",
    "PAYSTACK_SECRET_KEY": "sk_test_paystack",
    "RESEND_API_KEY": "re_test_key",
    "PAYFAST_MERCHANT_ID": "10000100",
    "PAYFAST_MERCHANT_KEY": "46f0cd694581a",
    "PAYFAST_PASSPHRASE": "jt7NOE43FZPn",
    "PAYFAST_MODE": "sandbox",
    "ADMIN_EMAILS": "admin@link2pay.co.za",
    "WHATSAPP_PROVIDER": "zoko",
    "WHATSAPP_CAMPAIGN_SEND_DELAY": "0",
}
for key, value in test_env_vars.items():
    os.environ[key] = value

import uuid  # noqa: E402
from unittest.mock import AsyncMock, patch  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from link2pay.auth import get_current_user  # noqa: E402
from link2pay.database import Base, get_db  # noqa: E402
from link2pay.main import app  # noqa: E402
from link2pay.models import PlatformSettings, Profile  # noqa: E402

engine = create_engine(
    "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    """Fresh schema per test"""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def make_profile(db, **overrides) -> Profile:
    fields = {
        "id": str(uuid.uuid4()),
        "email": "thandi@example.com",
        "full_name": "Thandi Mokoena",
        "business_name": "Thandi's Bakes",
        "whatsapp_number": "+27821234567",
    }
    fields.update(overrides)
    profile = Profile(**fields)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


@pytest.fixture
def merchant(db) -> Profile:
    return make_profile(db)


@pytest.fixture
def admin(db) -> Profile:
    return make_profile(
        db, email="admin@link2pay.co.za", full_name="Platform Admin", business_name=None
    )


@pytest.fixture
def client(db, merchant):
    """TestClient authenticated as the merchant"""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: merchant
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client, admin):
    app.dependency_overrides[get_current_user] = lambda: admin
    return client


@pytest.fixture
def whatsapp_settings(db) -> PlatformSettings:
    settings = PlatformSettings(zoko_api_key="zk_test", zoko_business_phone="+27110000000")
    db.add(settings)
    db.commit()
    return settings


def provider_response(status_code: int = 200, json: dict = None) -> httpx.Response:
    return httpx.Response(
        status_code,
        json=json if json is not None else {"id": "msg_123", "status": "queued"},
        request=httpx.Request("POST", "https://chat.zoko.io/v2/message"),
    )


@pytest.fixture
def mock_zoko(whatsapp_settings):
    """Zoko accepts every message"""
    with patch(
        "link2pay.services.whatsapp_service._post_zoko",
        new=AsyncMock(return_value=provider_response()),
    ) as mock_post:
        yield mock_post


@pytest.fixture
def mock_resend():
    with patch("resend.Emails.send", return_value={"id": "email_123"}) as mock_send:
        yield mock_send
