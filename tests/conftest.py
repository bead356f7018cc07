"""
tests/conftest.py -- Shared test fixtures for the tours backend.

This module provides:
  - make_settings(): Settings with a fixed key and the minimum bcrypt cost
  - seed_user() / make_user: write an identity straight into a UserStore
  - unit fixtures: settings, user_store, tour_store, authenticator, clock,
    mailer, reset_flow
  - _patch_lifespan(): wires test components into app.state, bypassing real startup
  - api_client: TestClient plus one bearer token per role and the LogMailer

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

DEBUG and BCRYPT_ROUNDS must be set before any core/auth import so that a
stray get_settings() call auto-generates SECRET_KEY instead of raising, and
never hashes at production cost.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.mailer import LogMailer
from auth.models import Role, User
from auth.reset import PasswordResetFlow
from auth.session import SessionAuthenticator
from auth.store import UserStore
from auth.tokens import hash_password
from core.config import Settings
from tours.store import TourStore

TEST_SECRET = "test-secret-key-that-is-at-least-32-chars"
TEST_PASSWORD = "pass1234"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_settings(**overrides) -> Settings:
    """Settings for tests. Keyword arguments win over environment variables."""
    values = {"debug": True, "secret_key": TEST_SECRET, "bcrypt_rounds": 4}
    values.update(overrides)
    return Settings(**values)


def seed_user(
    store: UserStore,
    email: str,
    role: Role = Role.user,
    password: str = TEST_PASSWORD,
    name: str | None = None,
) -> User:
    """Create an identity directly in the store, bypassing signup rules."""
    user = User(
        name=name or email.split("@")[0].title(),
        email=email,
        hashed_password=hash_password(password, rounds=4),
        role=role,
    )
    store.create_user(user)
    return user


# ---------------------------------------------------------------------------
# Unit fixtures -- fresh in-memory stores per test
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def make_user(user_store: UserStore):
    """Factory fixture: make_user(email, role=..., password=...) seeds the unit-test store."""

    def factory(email: str, **kwargs) -> User:
        return seed_user(user_store, email, **kwargs)

    return factory


@pytest.fixture
def tour_store() -> Generator[TourStore, None, None]:
    store = TourStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def authenticator(settings: Settings, user_store: UserStore) -> SessionAuthenticator:
    return SessionAuthenticator(settings, user_store)


class FakeClock:
    """Callable clock for services that take `clock=`. advance() moves it forward."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime.now(timezone.utc))


@pytest.fixture
def mailer() -> LogMailer:
    return LogMailer()


@pytest.fixture
def reset_flow(
    settings: Settings,
    user_store: UserStore,
    mailer: LogMailer,
    authenticator: SessionAuthenticator,
) -> PasswordResetFlow:
    return PasswordResetFlow(settings, user_store, mailer, authenticator)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, TourStore]:
    """Create isolated named shared-memory SQLite stores for one test module.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    db_url = f"sqlite:///file:test_tours_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url), TourStore(db_url)


def _patch_lifespan(
    settings: Settings,
    user_store: UserStore,
    tour_store: TourStore,
    authenticator: SessionAuthenticator,
    mailer: LogMailer,
):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test components into app.state so TestClient routes
    see isolated test DBs, and a LogMailer so reset emails can be read back.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.user_store = user_store
        app.state.tour_store = tour_store
        app.state.authenticator = authenticator
        app.state.reset_flow = PasswordResetFlow(settings, user_store, mailer, authenticator)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, dict[str, str], LogMailer], None, None]:
    """Yield (client, tokens, mailer) for API integration tests.

    tokens maps a role value ("admin", "lead-guide", "user") to a bearer
    token for a seeded account with that role. All seeded accounts use
    TEST_PASSWORD. Emails are <role>@example.com.
    """
    settings = make_settings()
    user_store, tour_store = _make_test_stores(request.module.__name__.replace(".", "_"))
    authenticator = SessionAuthenticator(settings, user_store)
    mailer = LogMailer()

    tokens = {}
    for role in (Role.admin, Role.lead_guide, Role.user):
        user = seed_user(user_store, f"{role.value}@example.com", role=role)
        tokens[role.value] = authenticator.issue_session(user).token

    app.router.lifespan_context = _patch_lifespan(settings, user_store, tour_store, authenticator, mailer)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, tokens, mailer

    tour_store.close()
    user_store.close()
