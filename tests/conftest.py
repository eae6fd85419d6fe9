import os
from datetime import datetime, timedelta, timezone

os.environ["PORTAL_DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_URL"] = "https://identity.test"
os.environ["SUPABASE_ANON_KEY"] = "anon-key"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret-with-enough-length-for-hs256"
os.environ["MAIN_ADMIN_EMAIL"] = "principal@elbethel.test"
os.environ["PAYSTACK_SECRET_KEY"] = "sk_test_secret"
os.environ["SMS_PROVIDER"] = "zapier"
os.environ["ZAPIER_SMS_WEBHOOK"] = "https://hooks.test/sms"
os.environ["SCHOOL_CODE"] = "ELBA"
os.environ["DEFAULT_TERM"] = "First Term"
os.environ["DEFAULT_SESSION"] = "2024/2025"

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from portal import init_portal
from portal.app import app
from portal.config import settings
from portal.database import Base, engine
from portal.identity import IdentityError, IdentityUser, get_identity_client
from portal.models import SchoolClass, Student, User, UserRole, new_id
from portal.paystack import PaystackClient, get_paystack_client
from portal.sms import SmsResult


class FakeIdentity:
    """Stands in for the hosted identity provider."""

    def __init__(self):
        self.accounts: dict[str, tuple[str, str]] = {}
        self.fail_with: str | None = None

    def _create(self, email: str, password: str) -> IdentityUser:
        if self.fail_with:
            raise IdentityError(self.fail_with)
        user_id = new_id()
        self.accounts[email] = (user_id, password)
        return IdentityUser(id=user_id, email=email)

    def sign_up(self, email, password, metadata):
        return self._create(email, password)

    def admin_create_user(self, email, password, metadata):
        return self._create(email, password)

    def sign_in(self, email, password):
        account = self.accounts.get(email)
        if not account or account[1] != password:
            raise IdentityError("Invalid login credentials", status_code=400)
        return IdentityUser(id=account[0], email=email), {"access_token": "token", "token_type": "bearer"}

    def get_user(self, access_token):
        raise IdentityError("Unauthorized", status_code=401)


class FakePaystack(PaystackClient):
    def __init__(self, secret_key: str = "sk_test_secret"):
        super().__init__(secret_key=secret_key, base_url="https://paystack.test")
        self.initialized: list[dict] = []
        self.transactions: dict[str, dict] = {}

    def initialize_transaction(self, *, email, amount, metadata):
        reference = f"ref-{len(self.initialized) + 1}"
        self.initialized.append({"email": email, "amount": amount, "metadata": metadata})
        return {"authorization_url": f"https://checkout.test/{reference}", "access_code": "code", "reference": reference}

    def verify_transaction(self, reference):
        return self.transactions[reference]


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    init_portal()
    yield


@pytest.fixture
def db():
    session = Session(bind=engine)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def paystack():
    return FakePaystack()


@pytest.fixture
def sent_sms(monkeypatch):
    sent = []

    def fake_send(to, message):
        sent.append((to, message))
        return SmsResult(ok=True, provider="zapier")

    for module in ("portal.services.auth", "portal.services.payments", "portal.services.communication"):
        monkeypatch.setattr(f"{module}.send_sms", fake_send)
    return sent


@pytest.fixture
def client(identity, paystack, sent_sms):
    app.dependency_overrides[get_identity_client] = lambda: identity
    app.dependency_overrides[get_paystack_client] = lambda: paystack
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_token(user_id: str, email: str, expires_in: int = 3600) -> str:
    payload = {
        "sub": user_id,
        "email": email,
        "aud": settings.jwt_audience,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    return jwt.encode(payload, settings.supabase_jwt_secret, algorithm="HS256")


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user.id, user.email)}"}


@pytest.fixture
def make_user(db):
    def factory(role: UserRole, email: str | None = None, **fields) -> User:
        user = User(
            email=email or f"{role.value}-{new_id()[:8]}@elbethel.test",
            full_name=fields.pop("full_name", f"Test {role.value.title()}"),
            role=role,
            is_approved=fields.pop("is_approved", True),
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return factory


@pytest.fixture
def school_class(db):
    return db.query(SchoolClass).filter(SchoolClass.name == "JSS1").one()


@pytest.fixture
def make_student(db, make_user, school_class):
    def factory(email: str | None = None, **fields) -> tuple[User, Student]:
        user = make_user(UserRole.STUDENT, email=email, phone=fields.pop("phone", None))
        student = Student(
            user_id=user.id,
            class_id=fields.pop("class_id", school_class.id),
            approved=fields.pop("approved", True),
            **fields,
        )
        db.add(student)
        db.commit()
        db.refresh(student)
        return user, student

    return factory


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN, email="admin@elbethel.test")


@pytest.fixture
def teacher(make_user):
    return make_user(UserRole.TEACHER, email="teacher@elbethel.test")


@pytest.fixture
def bursar(make_user):
    return make_user(UserRole.BURSAR, email="bursar@elbethel.test")


@pytest.fixture
def headers():
    return auth_headers
