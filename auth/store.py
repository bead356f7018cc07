"""
auth/store.py -- SQLAlchemy Core persistence layer for identities.

Pattern: Repository + Data Mapper (same as tours/store.py).
UserStore is the repository; _row_to_user is the mapper. Service and route
code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  UNIQUE(email) is enforced by the schema. create_user() lets the
  IntegrityError propagate; the session layer turns it into a ValidationError.

Timestamps are stored as UTC ISO 8601 strings with a fixed microsecond
precision, so lexicographic comparison in SQL matches chronological order
(used by get_by_reset_token()).

Atomicity: every write touches one row inside one connection/commit, so
password and reset-field updates are atomic per identity.

Layer rule: no imports from api/ or tours/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from auth.models import Role, User
from core.db import create_store_engine

logger = logging.getLogger("tours.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),  # stored lowercased
    Column("photo", Text),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default=Role.user.value),
    Column("password_changed_at", String(32)),
    Column("password_reset_token", String(64), index=True),  # SHA-256 hex digest
    Column("password_reset_expires", String(32)),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def to_iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///tours.db")
        user_id = store.create_user(User(name="Amy", email="amy@x.com", hashed_password=h))
        user = store.get_by_email("amy@x.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = create_store_engine(db_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by email (case-insensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_reset_token(self, token_hash: str, now: datetime) -> User | None:
        """Return the user holding this reset-token digest, if it has not expired yet."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where(
                    (_users.c.password_reset_token == token_hash) & (_users.c.password_reset_expires > to_iso(now))
                )
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by id."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.id)).fetchall()
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        created_at = user.created_at or datetime.now(timezone.utc)
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    name=user.name,
                    email=normalize_email(user.email),
                    photo=user.photo,
                    hashed_password=user.hashed_password,
                    role=Role.parse(user.role).value,
                    password_changed_at=to_iso(user.password_changed_at),
                    password_reset_token=user.password_reset_token,
                    password_reset_expires=to_iso(user.password_reset_expires),
                    created_at=to_iso(created_at),
                )
            )
            conn.commit()
            new_id = result.inserted_primary_key[0]
        user.id = new_id
        user.email = normalize_email(user.email)
        user.created_at = created_at
        logger.debug("Created user id=%s role=%s", new_id, user.role)
        return new_id

    def save(self, user: User) -> bool:
        """Write every mutable field of an existing user back to its row.

        Performs no validation of its own -- callers validate before saving
        when they need to (the reset flow stores reset fields without it).
        Returns True if a row was updated, False if user.id was not found.
        """
        if user.id is None:
            raise ValueError("Cannot save a user that has not been created yet.")
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user.id)
                .values(
                    name=user.name,
                    email=normalize_email(user.email),
                    photo=user.photo,
                    hashed_password=user.hashed_password,
                    role=Role.parse(user.role).value,
                    password_changed_at=to_iso(user.password_changed_at),
                    password_reset_token=user.password_reset_token,
                    password_reset_expires=to_iso(user.password_reset_expires),
                )
            )
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        photo=row.photo,
        hashed_password=row.hashed_password,
        role=Role.parse(row.role),
        password_changed_at=from_iso(row.password_changed_at),
        password_reset_token=row.password_reset_token,
        password_reset_expires=from_iso(row.password_reset_expires),
        created_at=from_iso(row.created_at),
    )
