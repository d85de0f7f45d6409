from __future__ import annotations

import uuid
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from solarcrm.auth.jwt import create_secondary_token, create_session_token, decode_jwt
from solarcrm.auth.supabase_auth import SecondarySession, SecondaryUser
from solarcrm.core.config import get_config
from solarcrm.core.dependencies import get_auth_client, get_session_factory, get_storage
from solarcrm.core.exceptions import AuthenticationError, StorageError
from solarcrm.main import create_app
from solarcrm.models import Base, StepDocument, StepMaster, User
from solarcrm.models.enums import SubmissionType, UserRole, UserStatus
from solarcrm.services.lead_service import LeadService
from solarcrm.services.user_service import UserService

PASSWORD = "correct-horse-battery"


class FakeStorage:
    """In-memory stand-in for the storage bucket."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.removed: list[str] = []
        self.fail_remove = False

    def upload(self, path: str, content: bytes, content_type: str | None = None) -> str:
        self.objects[path] = content
        return path

    def remove(self, paths: list[str]) -> None:
        if self.fail_remove:
            raise StorageError("Storage remove failed.")
        for path in paths:
            self.objects.pop(path, None)
            self.removed.append(path)

    def create_signed_url(self, path: str, expires_in: int) -> str:
        return f"https://storage.test/signed/{path}?expires={expires_in}"


class FakeAuthClient:
    """Auth service double issuing tokens signed with the configured secret."""

    def __init__(self, secret: str) -> None:
        self.secret = secret
        self.accounts: dict[str, tuple[str, str]] = {}
        self.get_user_calls: list[str] = []
        self.signed_out: list[str] = []
        self.refreshed: list[str] = []
        self.return_session_on_signup = True

    def register(self, user_id: str, email: str, password: str = PASSWORD) -> None:
        self.accounts[email] = (user_id, password)

    def _session(self, user_id: str, email: str) -> SecondarySession:
        return SecondarySession(
            access_token=create_secondary_token(user_id, email, secret=self.secret),
            refresh_token=f"refresh-{user_id}",
            user_id=user_id,
            email=email,
            expires_in=3600,
        )

    def sign_in_with_password(self, email: str, password: str) -> SecondarySession:
        account = self.accounts.get(email)
        if account is None or account[1] != password:
            raise AuthenticationError("Invalid login credentials")
        return self._session(account[0], email)

    def sign_up(self, email: str, password: str, metadata: dict[str, Any] | None = None):
        user_id = str(uuid.uuid4())
        self.register(user_id, email, password)
        if self.return_session_on_signup:
            return self._session(user_id, email)
        return SecondaryUser(id=user_id, email=email, user_metadata=metadata or {})

    def refresh_session(self, refresh_token: str) -> SecondarySession:
        self.refreshed.append(refresh_token)
        user_id = refresh_token.removeprefix("refresh-")
        email = next((email for email, (uid, _) in self.accounts.items() if uid == user_id), "unknown@example.com")
        return self._session(user_id, email)

    def get_user(self, access_token: str) -> SecondaryUser:
        self.get_user_calls.append(access_token)
        claims = decode_jwt(access_token, secret=self.secret)
        return SecondaryUser(id=claims["sub"], email=claims.get("email"))

    def sign_out(self, access_token: str) -> None:
        self.signed_out.append(access_token)


@pytest.fixture
def config():
    return get_config()


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def _user(db, role: UserRole, name: str, status: UserStatus = UserStatus.ACTIVE) -> User:
    user = User(
        email=f"{name.lower().replace(' ', '.')}@example.com",
        name=name,
        phone="9876543210",
        role=role,
        status=status,
    )
    db.add(user)
    return user


@pytest.fixture
def users(db) -> dict[str, User]:
    seeded = {
        "admin": _user(db, UserRole.ADMIN, "Asha Admin"),
        "office": _user(db, UserRole.OFFICE, "Omar Office"),
        "agent": _user(db, UserRole.AGENT, "Anil Agent"),
        "other_agent": _user(db, UserRole.AGENT, "Bela Agent"),
        "installer": _user(db, UserRole.INSTALLER, "Ira Installer"),
        "customer": _user(db, UserRole.CUSTOMER, "Chetan Customer"),
        "disabled": _user(db, UserRole.OFFICE, "Dev Disabled", status=UserStatus.DISABLED),
    }
    db.commit()
    return seeded


@pytest.fixture
def steps(db) -> list[StepMaster]:
    """Four-step template: intake, documents, installation, closure."""
    chain = [
        StepMaster(step_name="Lead Created", order_index=1, allowed_roles=["admin", "office", "agent"]),
        StepMaster(
            step_name="Document Collection",
            order_index=2,
            allowed_roles=["admin", "office", "agent", "customer"],
            attachments_allowed=True,
            customer_upload=True,
        ),
        StepMaster(
            step_name="Installation Scheduling",
            order_index=3,
            allowed_roles=["admin", "office", "installer"],
            remarks_required=True,
            requires_installer_assignment=True,
        ),
        StepMaster(step_name="Project Closure", order_index=4, allowed_roles=["admin", "office"]),
    ]
    chain[1].documents = [
        StepDocument(document_category="aadhar_front", submission_type=SubmissionType.FILE),
        StepDocument(document_category="bijli_bill", submission_type=SubmissionType.FILE),
        StepDocument(document_category="customer_profile", submission_type=SubmissionType.FORM),
    ]
    db.add_all(chain)
    db.commit()
    return chain


@pytest.fixture
def make_lead(db, users, steps):
    def _make(actor: User | None = None, **overrides):
        data = {
            "customer_name": "Ravi Kumar",
            "phone": "+91 98765 43210",
            "address": "12 MG Road, Pune",
        }
        data.update(overrides)
        return LeadService(db).create_lead(data, actor or users["agent"])

    return _make


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def fake_auth(config):
    return FakeAuthClient(config.SUPABASE_JWT_SECRET)


@pytest.fixture
def app(session_factory, fake_auth, fake_storage):
    def _profile_lookup(primary, cookies):
        with session_factory() as session:
            return UserService(session).get_profile(primary.user_id)

    application = create_app(profile_lookup=_profile_lookup)
    application.dependency_overrides[get_session_factory] = lambda: session_factory
    application.dependency_overrides[get_auth_client] = lambda: fake_auth
    application.dependency_overrides[get_storage] = lambda: fake_storage
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def session_token(config):
    def _token(user: User) -> str:
        return create_session_token(
            user,
            secret=config.JWT_SECRET,
            secondary_access_token=create_secondary_token(user.id, user.email, secret=config.SUPABASE_JWT_SECRET),
            secondary_refresh_token=f"refresh-{user.id}",
        )

    return _token


@pytest.fixture
def auth_headers(session_token):
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {session_token(user)}"}

    return _headers
