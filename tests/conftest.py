"""
Test configuration and fixtures for pytest.

- Environment for config.py is set before any app module is imported
- Session store on SQLite in-memory (StaticPool keeps one connection alive)
- Controllable clock and a fake Google client replace the startup singletons
- FastAPI TestClient with those dependencies overridden
"""
import os
from datetime import datetime, timedelta, UTC
from typing import Generator

from cryptography.fernet import Fernet

os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("TOKEN_ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ["APP_MODE"] = "test"
os.environ["SKIP_DB_INIT"] = "true"
os.environ["SESSION_SWEEP_INTERVAL"] = "0"

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session as DbSession, sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from deps import get_clock, get_google_client
from errors import UpstreamError
from main import app
from schemas import GoogleUserInfo, TokenResponse
from session_store import SessionStore
from sessions import SessionManager


engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

START = datetime(2025, 1, 15, 9, 0, tzinfo=UTC)


class FakeClock:
    """Wall clock the tests move by hand."""

    def __init__(self, start: datetime = START):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


class FakeGoogle:
    """Stands in for GoogleClient; records every call and returns canned payloads."""

    def __init__(self):
        self.calls = []
        self.exchange_result = TokenResponse(
            access_token="A", refresh_token="RT", expires_in=3600, token_type="Bearer"
        )
        self.refresh_result = TokenResponse(access_token="A2", expires_in=3600, token_type="Bearer")
        self.refresh_error = None
        self.user_info = GoogleUserInfo(
            id="U",
            email="u@x",
            verified_email=True,
            name="Una Example",
            given_name="Una",
            family_name="Example",
            picture="https://example.com/u.png",
        )
        self.user_info_error = None
        self.phone_numbers = ["+44 20 7946 0000"]
        self.phone_error = None
        self.events = {
            "items": [{"id": "evt1", "summary": "Standup"}],
            "timeZone": "Europe/London",
            "summary": "u@x",
        }
        self.events_error = None

    def calls_to(self, name: str) -> list:
        return [call for call in self.calls if call[0] == name]

    def exchange_code(self, code, redirect_uri):
        self.calls.append(("exchange_code", code, redirect_uri))
        return self.exchange_result.model_copy()

    def refresh(self, refresh_token):
        self.calls.append(("refresh", refresh_token))
        if self.refresh_error is not None:
            raise self.refresh_error
        return self.refresh_result.model_copy()

    def get_user_info(self, access_token):
        self.calls.append(("get_user_info", access_token))
        if self.user_info_error is not None:
            raise self.user_info_error
        return self.user_info.model_copy()

    def get_phone_numbers(self, access_token):
        self.calls.append(("get_phone_numbers", access_token))
        if self.phone_error is not None:
            raise self.phone_error
        return list(self.phone_numbers)

    def list_events(self, access_token, calendar_id, params):
        self.calls.append(("list_events", access_token, calendar_id, dict(params)))
        if self.events_error is not None:
            raise self.events_error
        return dict(self.events)


def upstream_error(status: int, details=None) -> UpstreamError:
    return UpstreamError(f"status {status}", upstream_status=status, details=details)


def make_request(session_id=None) -> Request:
    """Bare Starlette request carrying an optional session_id cookie."""
    headers = []
    if session_id is not None:
        headers.append((b"cookie", f"session_id={session_id}".encode()))
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": headers,
        "query_string": b"",
    })


@pytest.fixture(scope="function")
def db() -> Generator[DbSession, None, None]:
    """Fresh sessions table per test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def google() -> FakeGoogle:
    return FakeGoogle()


@pytest.fixture
def store(db: DbSession) -> SessionStore:
    return SessionStore(db)


@pytest.fixture
def sessions(store: SessionStore, clock: FakeClock) -> SessionManager:
    return SessionManager(store, clock)


@pytest.fixture(scope="function")
def client(db: DbSession, clock: FakeClock, google: FakeGoogle) -> Generator[TestClient, None, None]:
    """TestClient wired to the test database, the fake clock and the fake Google client."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_google_client] = lambda: google

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def login(client: TestClient):
    """Sign in through googleLogin and return the session id from the cookie."""
    def _login(code: str = "C", redirect_uri: str = "R") -> str:
        resp = client.post(
            "/api/authorize/googleLogin",
            json={"code": code, "redirectUri": redirect_uri},
        )
        assert resp.status_code == 200, resp.text
        return client.cookies.get("session_id")

    return _login
