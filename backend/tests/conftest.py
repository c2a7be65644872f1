"""Pytest fixtures: SQLite database and a recording push sink for fast, isolated tests."""
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from family_ledger.database import Base, get_db
from family_ledger.main import app
from family_ledger.services.push import DeliveryResult, PushDeliveryError, get_push_sink

# Import all models so they register with Base.metadata
from family_ledger.models.user import User                  # noqa: F401
from family_ledger.models.grant import Grant                # noqa: F401
from family_ledger.models.category import Category          # noqa: F401
from family_ledger.models.event import Event                # noqa: F401
from family_ledger.models.transaction import Transaction    # noqa: F401
from family_ledger.models.notification import Notification  # noqa: F401

SQLITE_URL = "sqlite:///./test.db"


class RecordingPushSink:
    """Push sink double: records every send, optionally failing."""

    def __init__(self):
        self.calls = []
        self.fail_with = None
        self.reject_with = None
        self.crash_with = None

    def send(self, recipient_ids, title, body):
        self.calls.append({"recipient_ids": list(recipient_ids), "title": title, "body": body})
        if self.crash_with:
            raise self.crash_with
        if self.fail_with:
            raise PushDeliveryError(self.fail_with)
        if self.reject_with:
            return DeliveryResult(delivered=False, recipient_count=0, provider_errors=[self.reject_with])
        return DeliveryResult(delivered=True, recipient_count=len(recipient_ids))


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a database session, closed after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def push_sink():
    return RecordingPushSink()


@pytest.fixture(scope="function")
def client(session_factory, push_sink):
    """FastAPI TestClient with the database and push sink dependencies overridden."""

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_push_sink] = lambda: push_sink
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def make_user(db, fullname: str, email: str = None) -> User:
    """Insert a user directly through the session."""
    user = User(fullname=fullname, email=email or f"{fullname.lower().replace(' ', '.')}@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_grant(db, owner: User, member: User, permission: str) -> Grant:
    grant = Grant(owner_id=owner.user_id, member_id=member.user_id, permission=permission)
    db.add(grant)
    db.commit()
    db.refresh(grant)
    return grant


def event_payload(**overrides) -> dict:
    payload = {
        "event_name": "Wedding Reception",
        "contact_mobile": "555-0100",
        "booking_total_value": 5000,
        "advance_payment": 0,
        "payment_method": "cash",
        "notes": "Hall B",
        "category_name": "Wedding",
        "priority": "medium",
    }
    payload.update(overrides)
    return payload


def create_test_user(client: TestClient, name: str = "Test User", email: str = None) -> dict:
    """Helper: POST /api/users and return response JSON."""
    resp = client.post("/api/users/", json={
        "fullname": name,
        "email": email or f"{name.lower().replace(' ', '.')}@example.com",
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


def share_with(client: TestClient, owner: dict, member: dict, permission: str) -> dict:
    """Helper: POST /api/family/share as ``owner`` and return response JSON."""
    resp = client.post(
        f"/api/family/share?actor_user_id={owner['user_id']}",
        json={"member_email": member["email"], "permission": permission},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


def create_test_event(client: TestClient, actor: dict, **overrides) -> dict:
    """Helper: POST /api/events as ``actor`` and return response JSON."""
    resp = client.post(f"/api/events/?actor_user_id={actor['user_id']}", json=event_payload(**overrides))
    assert resp.status_code == 201, resp.text
    return resp.json()
