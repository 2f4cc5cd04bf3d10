import itertools
import os

# Настройки читаются при импорте app.config, поэтому задаем их до импорта приложения
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RESEND_API_KEY"] = ""
os.environ["QR_SIGNING_SECRET"] = "test-qr-secret"
os.environ["TIMEZONE"] = "Europe/Moscow"
os.environ["COMPANY_NAME"] = "Tech Solutions Inc."

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.main import app
from app.models.user import User
from app.services import notifications
from app.services.auth import create_access_token, get_current_timestamp, get_now, get_password_hash
from app.services.email_delivery import DeliveryResult
from app.services.qr_pass import QrGenerationError

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "secret123"
FAKE_PNG = b"\x89PNG\r\n\x1a\nfake-qr"

_user_counter = itertools.count(1)


class RecordingEncoder:
    def __init__(self):
        self.calls = []

    def encode(self, data: str) -> bytes:
        self.calls.append(data)
        return FAKE_PNG


class FailingEncoder:
    def encode(self, data: str) -> bytes:
        raise QrGenerationError("data too long")


class RecordingSender:
    def __init__(self, result=None):
        self.result = result or DeliveryResult(success=True, message_id="re_test_1")
        self.messages = []

    def send(self, message):
        self.messages.append(message)
        return self.result


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session, monkeypatch):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    # Фоновые уведомления открывают свою сессию
    monkeypatch.setattr(notifications, "SessionLocal", TestingSessionLocal)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    def _make_user(role="employee", email=None, name=None, department="Engineering", is_active=True):
        user = User(
            email=email or f"{role}{next(_user_counter)}@acme.com",
            name=name or role.capitalize(),
            role=role,
            department=department,
            password_hash=get_password_hash(PASSWORD),
            is_active=1 if is_active else 0,
            theme="light",
            created_at=get_current_timestamp(),
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user("admin", email="admin@acme.com", name="Admin User", department="Operations")


@pytest.fixture
def employee(make_user):
    return make_user("employee", email="john.smith@acme.com", name="John Smith")


@pytest.fixture
def other_employee(make_user):
    return make_user("employee", email="mary.jones@acme.com", name="Mary Jones", department="Finance")


@pytest.fixture
def guard(make_user):
    return make_user("guard", email="security@acme.com", name="Security Guard", department="Operations")


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': user.id})}"}


def future_date(days: int = 7) -> str:
    return (get_now().date() + timedelta(days=days)).isoformat()


def pre_approval_body(**overrides) -> dict:
    body = {
        "visitor_name": "Jane Roe",
        "visitor_email": "jane.roe@partner.com",
        "visitor_phone": "+1 555 0100",
        "purpose": "Business Meeting",
        "scheduled_date": future_date(),
        "start_time": "10:00",
        "end_time": "11:00",
    }
    body.update(overrides)
    return body
