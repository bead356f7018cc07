"""
auth/models.py -- Domain types for authentication entities.

Pattern: Data class (pure data container, almost zero logic). Stores and
services do the work; the only behaviour here is the password-change
comparison, which is a property of the record itself.

Layer rule: no imports from api/ or tours/. Import from core/ is allowed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from core.errors import ValidationError


class Role(str, Enum):
    """Closed set of roles an identity can hold."""

    user = "user"
    guide = "guide"
    lead_guide = "lead-guide"
    admin = "admin"

    @classmethod
    def parse(cls, value: str | Role) -> Role:
        """Return the Role for a raw string, raising ValidationError for unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(r.value for r in cls)
            raise ValidationError(f"Invalid role {value!r}. Allowed roles: {allowed}.") from None


@dataclass
class User:
    """A registered identity.

    hashed_password is a bcrypt hash and must never be rendered in a response;
    api.models.UserOut deliberately has no field for it.

    password_reset_token holds the SHA-256 digest of the emailed reset token,
    never the plaintext. Both reset fields are None outside a pending reset.

    id is None before the record is written to the database.
    """

    name: str
    email: str
    hashed_password: str
    role: Role = Role.user
    id: int | None = None
    photo: str | None = None
    password_changed_at: datetime | None = None
    password_reset_token: str | None = None
    password_reset_expires: datetime | None = None
    created_at: datetime | None = None

    def changed_password_after(self, issued_at: float) -> bool:
        """True if the password was changed after a token with this `iat` was issued."""
        if self.password_changed_at is None:
            return False
        return self.password_changed_at.timestamp() > issued_at

    def clear_password_reset(self) -> None:
        self.password_reset_token = None
        self.password_reset_expires = None
