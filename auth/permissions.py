"""
auth/permissions.py -- Role-based access decision.

authorize() is a pure function of (user, allowed roles). It has no I/O and
no FastAPI dependency; auth/dependencies.restrict_to() adapts it to a route
dependency.
"""

from __future__ import annotations

from collections.abc import Iterable

from auth.models import Role, User
from core.errors import AuthzError


def authorize(user: User, allowed_roles: Iterable[Role | str]) -> None:
    """Raise AuthzError (403) unless the user's role is one of allowed_roles."""
    allowed = {Role.parse(r) for r in allowed_roles}
    if Role.parse(user.role) not in allowed:
        raise AuthzError("You do not have permission to perform this action")
