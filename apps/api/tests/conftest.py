from __future__ import annotations

import os
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

# Ensure auth mode + secrets are set before app import
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("AUTH_MODE", "jwt")
os.environ.setdefault("JWT_SECRET", "test_jwt_secret_32_chars_minimum")
os.environ.setdefault("ACCESS_TOKEN_TTL_SECONDS", "900")
os.environ.setdefault("ENV", "local")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from happenings.auth.jwt import create_access_token  # noqa: E402
from happenings.db import SessionLocal, engine  # noqa: E402
from happenings.main import app  # noqa: E402
from happenings.models import Base, Event, EventHost, Profile  # noqa: E402
from happenings.models.event import EventHostRole, InvitationStatus  # noqa: E402
from happenings.models.profile import ProfileRole  # noqa: E402
from happenings.services.date_keys import today_key  # noqa: E402


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def clean_db():
    # Ensure a clean slate for each test
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def future_weekday(weekday: int, weeks_ahead: int = 1) -> str:
    """Date key of ``weekday`` (0=Monday) at least ``weeks_ahead`` weeks after today."""
    today = date.fromisoformat(today_key())
    start = today + timedelta(days=7 * weeks_ahead)
    return (start + timedelta(days=(weekday - start.weekday()) % 7)).isoformat()


@pytest.fixture
def next_weekday():
    return future_weekday


@pytest.fixture
def make_user(db_session):
    def _make(email: str, role: ProfileRole = ProfileRole.MEMBER, full_name: str | None = None):
        profile = Profile(email=email, role=role, full_name=full_name)
        db_session.add(profile)
        db_session.commit()
        db_session.refresh(profile)
        token = create_access_token(profile.id, email=email)
        return profile, auth_headers(token)

    return _make


@pytest.fixture
def host(make_user):
    return make_user("host@example.com", ProfileRole.HOST, "Hana Host")


@pytest.fixture
def member(make_user):
    return make_user("member@example.com", ProfileRole.MEMBER, "Mo Member")


@pytest.fixture
def admin(make_user):
    return make_user("admin@example.com", ProfileRole.ADMIN, "Ada Admin")


@pytest.fixture
def make_event(db_session):
    """Insert an event row directly, with its primary host attached."""

    def _make(host_profile: Profile, **fields) -> Event:
        data = {
            "title": "Open Mic",
            "is_published": True,
            "day_of_week": "Wednesday",
            "recurrence_rule": "weekly",
            "start_time": "19:00",
        }
        data.update(fields)
        event = Event(host_id=host_profile.id, **data)
        db_session.add(event)
        db_session.flush()
        db_session.add(
            EventHost(
                event_id=event.id,
                user_id=host_profile.id,
                role=EventHostRole.HOST,
                invitation_status=InvitationStatus.ACCEPTED,
            )
        )
        db_session.commit()
        db_session.refresh(event)
        return event

    return _make
