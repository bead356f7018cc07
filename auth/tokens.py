"""
auth/tokens.py -- JWT, password hashing, reset-token and cookie utilities.

Security design decisions:
  JWT: python-jose with HS256. Session tokens carry only the user id plus
       iat/exp. iat is written as a float so it can be ordered against
       password_changed_at with sub-second precision. Verification returns
       None on any failure -- the session layer turns that into AuthError.

  Passwords: bcrypt directly (no passlib wrapper). The work factor comes from
       Settings.bcrypt_rounds so tests can run with the minimum cost.

  Reset tokens: secrets.token_hex(32) gives 256 bits of entropy, so a plain
       SHA-256 digest is enough at rest -- bcrypt's slowness is unnecessary
       for a random secret and a deterministic digest allows lookup by hash.

Every function takes its secret / cost / lifetime as an argument. Nothing in
this module reads configuration on its own.

Layer rule: no imports from api/ or tours/.
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

_ALGORITHM = "HS256"

SESSION_COOKIE = "jwt"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are truncated by bcrypt. The API layer caps
    password fields at 72 characters, which keeps ASCII inputs at or below
    the truncation threshold.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the store
        return False


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(
    user_id: int,
    secret_key: str,
    expire_seconds: int,
    now: datetime | None = None,
) -> str:
    """Encode a signed session JWT for the given user id.

    Args:
        user_id:        Primary key of the identity.
        secret_key:     HS256 signing key (Settings.secret_key).
        expire_seconds: Lifetime of the token.
        now:            Issue time. Defaults to the current UTC time.
    """
    issued = now or datetime.now(timezone.utc)
    expire = issued + timedelta(seconds=expire_seconds)
    payload = {
        "id": user_id,
        "iat": issued.timestamp(),
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(payload, secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str, secret_key: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure.

    Covers bad signatures, expiry, malformed tokens and payloads missing the
    claims the session layer relies on.
    """
    try:
        payload = jwt.decode(token, secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if not isinstance(payload.get("id"), int) or not isinstance(payload.get("iat"), (int, float)):
        return None
    return payload


# ---------------------------------------------------------------------------
# Password reset tokens
# ---------------------------------------------------------------------------


def generate_reset_token() -> str:
    """Return a new random reset token (64 hex chars). Delivered once, never stored."""
    return secrets.token_hex(32)


def hash_reset_token(raw_token: str) -> str:
    """Return the SHA-256 hex digest stored in place of a reset token."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, max_age: int, secure: bool) -> None:
    """Write the session JWT as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie.
    samesite="lax": not sent on cross-site POST.
    secure: only sent over HTTPS outside development.
    """
    response.set_cookie(
        SESSION_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=max_age,
    )


def clear_auth_cookie(response, secure: bool) -> None:
    """Overwrite the session cookie with a dummy value that expires in 10 seconds."""
    response.set_cookie(
        SESSION_COOKIE,
        value="loggedout",
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=10,
    )
