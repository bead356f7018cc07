"""
auth/session.py -- Session issuing and request authentication.

SessionAuthenticator owns the identity lifecycle around session tokens:
  signup / login       -- create or verify credentials, then issue a session
  authenticate         -- verify a bearer token on every protected request
  update_password      -- re-authenticate, change password, issue a session

Invalidation by password change:
  Every password change stamps password_changed_at. authenticate() rejects
  any token whose iat is earlier than that stamp, so changing a password
  logs out every other session at their next request. The session returned
  by update_password()/reset_password() is issued after the stamp and stays
  valid.

Enumeration resistance:
  login() returns the same AuthError for an unknown email and a wrong
  password, and runs bcrypt in both cases so timing does not differ either.

The authenticator is built from an explicit Settings object and a UserStore.
It keeps no module-level state.

Layer rule: no imports from api/ or tours/. No FastAPI imports -- the HTTP
adapter lives in auth/dependencies.py.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.exc import IntegrityError

from auth.models import Role, User
from auth.store import UserStore, normalize_email
from auth.tokens import create_access_token, decode_access_token, hash_password, verify_password
from core.config import Settings
from core.errors import AuthError, ValidationError

logger = logging.getLogger("tours.auth")

MIN_PASSWORD_LENGTH = 8


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Session:
    """A freshly issued session: the identity and its signed token."""

    user: User
    token: str


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an `Authorization: Bearer <token>` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def validate_password(password: str | None, password_confirm: str | None) -> None:
    if not password:
        raise ValidationError("Please provide a password.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")
    if password != password_confirm:
        raise ValidationError("Passwords are not the same!")


def validate_email_address(email: str | None) -> str:
    """Return the normalized (trimmed, lowercased) email or raise ValidationError."""
    if not email or not email.strip():
        raise ValidationError("A user must have an email.")
    try:
        validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError:
        raise ValidationError("Please provide a valid email.") from None
    return normalize_email(email)


class SessionAuthenticator:
    """Issue and verify session tokens for identities held in a UserStore."""

    def __init__(
        self,
        settings: Settings,
        store: UserStore,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.settings = settings
        self.store = store
        self.clock = clock
        # Hashed once with the configured cost so the unknown-email branch of
        # login() spends the same bcrypt time as the wrong-password branch.
        self._dummy_hash = hash_password("tours_timing_dummy", rounds=settings.bcrypt_rounds)

    # ------------------------------------------------------------------
    # Token issue / verify
    # ------------------------------------------------------------------

    def issue_session(self, user: User) -> Session:
        token = create_access_token(
            user.id,
            self.settings.secret_key,
            self.settings.token_expire_seconds,
            now=self.clock(),
        )
        return Session(user=user, token=token)

    def authenticate(self, token: str | None) -> User:
        """Return the identity behind a session token or raise AuthError."""
        if not token:
            raise AuthError("You are not logged in! Please log in to get access.")

        payload = decode_access_token(token, self.settings.secret_key)
        if payload is None:
            raise AuthError("Invalid token. Please log in again.")

        user = self.store.get_by_id(payload["id"])
        if user is None:
            raise AuthError("The user belonging to this token no longer exists.")

        if user.changed_password_after(payload["iat"]):
            logger.info("Rejected token for user id=%s issued before last password change", user.id)
            raise AuthError("User recently changed password! Please log in again.")

        return user

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def signup(self, name: str, email: str, password: str, password_confirm: str) -> Session:
        """Create a new `user`-role identity and log it in."""
        if not name or not name.strip():
            raise ValidationError("A user must have a name.")
        email = validate_email_address(email)
        validate_password(password, password_confirm)
        if self.store.get_by_email(email) is not None:
            raise ValidationError("Email address is already in use.")

        user = User(
            name=name.strip(),
            email=email,
            hashed_password=hash_password(password, rounds=self.settings.bcrypt_rounds),
            role=Role.user,
            created_at=self.clock(),
        )
        try:
            self.store.create_user(user)
        except IntegrityError as exc:
            # Concurrent signup with the same email won the race.
            raise ValidationError("Email address is already in use.") from exc

        logger.info("New user signed up (id=%s)", user.id)
        return self.issue_session(user)

    def login(self, email: str, password: str) -> Session:
        if not email or not password:
            raise ValidationError("Please provide email and password!")

        user = self.store.get_by_email(email)
        if user is None:
            verify_password(password, self._dummy_hash)
            raise AuthError("Incorrect email or password!")
        if not verify_password(password, user.hashed_password):
            raise AuthError("Incorrect email or password!")

        return self.issue_session(user)

    def set_password(self, user: User, password: str, password_confirm: str) -> None:
        """Validate and apply a new password to `user` in memory. The caller saves."""
        validate_password(password, password_confirm)
        user.hashed_password = hash_password(password, rounds=self.settings.bcrypt_rounds)
        user.password_changed_at = self.clock()

    def update_password(
        self,
        user: User,
        current_password: str,
        new_password: str,
        new_password_confirm: str,
    ) -> Session:
        """Change the password of a logged-in user after re-checking the current one."""
        fresh = self.store.get_by_id(user.id)
        if fresh is None:
            raise AuthError("The user belonging to this token no longer exists.")
        if not current_password or not verify_password(current_password, fresh.hashed_password):
            raise AuthError("Your current password is wrong.")

        self.set_password(fresh, new_password, new_password_confirm)
        self.store.save(fresh)
        logger.info("Password updated for user id=%s", fresh.id)
        return self.issue_session(fresh)
