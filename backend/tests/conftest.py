import os
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


ROOT = Path(__file__).resolve().parents[1]
DB_PATH = (ROOT / "test.db").resolve()
SQLITE_URL = f"sqlite:///{DB_PATH.as_posix()}"
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = SQLITE_URL
os.environ["FIREBASE_CREDENTIALS_JSON"] = str(ROOT / "missing-firebase-credentials.json")
os.environ["APNS_TOPIC"] = "com.example.repairdesk"
os.environ["RESOLVER_MAX_WORKERS"] = "4"

from repairdesk.db import session as db_session  # noqa: E402
from repairdesk.db.base import Base  # noqa: E402
import repairdesk.models  # noqa: E402
from repairdesk.api import deps  # noqa: E402
from repairdesk.main import app  # noqa: E402
from repairdesk.models.enums import UserRole  # noqa: E402
from repairdesk.models.user import User  # noqa: E402
from repairdesk.services.apns_service import ApnsSendResult  # noqa: E402
from repairdesk.services.identity_service import CallerIdentity  # noqa: E402


VALID_TOKEN = "valid-id-token"

engine = create_engine(
    SQLITE_URL,
    connect_args={"check_same_thread": False},
)

db_session.engine = engine
db_session.SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
)


class FakeFcmSender:
    """Accepts every token unless the call number is listed in fail_on_calls."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.fail_on_calls: set[int] = set()

    def send_multicast(self, tokens, payload):
        self.calls.append(list(tokens))
        if len(self.calls) in self.fail_on_calls:
            raise RuntimeError("FCM unavailable")
        return SimpleNamespace(
            success_count=len(tokens),
            failure_count=0,
            responses=[
                SimpleNamespace(success=True, message_id=f"msg-{i}", exception=None)
                for i, _ in enumerate(tokens)
            ],
        )


class FakeApnsSession:
    def __init__(self, provider: "FakeApnsProvider") -> None:
        self._provider = provider
        self.batches: list[list[str]] = []
        self.close_calls = 0

    def send(self, payload, devices):
        self.batches.append(list(devices))
        if len(self.batches) in self._provider.fail_on_batches:
            raise RuntimeError("APNs connection reset")
        return ApnsSendResult(sent=list(devices), failed=[])

    def close(self) -> None:
        self.close_calls += 1


class FakeApnsProvider:
    configured = True

    def __init__(self) -> None:
        self.sessions: list[FakeApnsSession] = []
        self.fail_on_batches: set[int] = set()
        self.fail_on_open = False

    def open_session(self) -> FakeApnsSession:
        if self.fail_on_open:
            raise RuntimeError("APNs signing key not found")
        session = FakeApnsSession(self)
        self.sessions.append(session)
        return session


class FakeIdentityService:
    def __init__(self) -> None:
        self.created: list[dict] = []
        self.deleted: list[str] = []
        self.revoked: list[str] = []
        self.error: Exception | None = None
        self.verify_error: Exception | None = None

    def verify_id_token(self, id_token: str) -> CallerIdentity | None:
        if self.verify_error:
            raise self.verify_error
        if id_token != VALID_TOKEN:
            return None
        return CallerIdentity(uid="owner-uid", email="owner@example.com")

    def create_user(self, *, email: str, password: str, display_name: str) -> str:
        if self.error:
            raise self.error
        self.created.append({"email": email, "password": password, "display_name": display_name})
        return f"staff-uid-{len(self.created)}"

    def delete_user(self, uid: str) -> None:
        if self.error:
            raise self.error
        self.deleted.append(uid)

    def revoke_refresh_tokens(self, uid: str) -> None:
        if self.error:
            raise self.error
        self.revoked.append(uid)


@pytest.fixture()
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = db_session.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def session_factory(db):
    return db_session.SessionLocal


@pytest.fixture()
def fcm_sender():
    return FakeFcmSender()


@pytest.fixture()
def apns_provider():
    return FakeApnsProvider()


@pytest.fixture()
def identity():
    return FakeIdentityService()


@pytest.fixture()
def add_user(db):
    counter = {"n": 0}

    def _add_user(
        mobile: str | None,
        *,
        role: UserRole = UserRole.USER,
        fcm_tokens: list | None = None,
        fcm_token: str | None = None,
    ) -> User:
        counter["n"] += 1
        user = User(
            uid=f"user-{counter['n']:03d}",
            mobile=mobile,
            role=role,
            fcm_tokens=fcm_tokens,
            fcm_token=fcm_token,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _add_user


@pytest.fixture()
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {VALID_TOKEN}"}


@pytest.fixture()
def client(db, fcm_sender, apns_provider, identity):
    app.dependency_overrides[deps.get_fcm_sender] = lambda: fcm_sender
    app.dependency_overrides[deps.get_apns_provider] = lambda: apns_provider
    app.dependency_overrides[deps.get_identity_service] = lambda: identity
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
