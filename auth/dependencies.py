"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Protected routes authenticate with the `Authorization: Bearer <token>` header.
The session cookie set at login is for browser clients that forward it
themselves; it is not read here.

get_current_user() verifies the token through the SessionAuthenticator on
app.state and raises AuthError (401) on any failure. restrict_to(*roles)
builds a dependency that additionally runs the access gate and raises
AuthzError (403). Both errors reach the AppError handler in api/main.py.

Layer rule: no imports from api/ or tours/. FastAPI imports are allowed
because this module is part of the dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, Request

from auth.models import Role, User
from auth.permissions import authorize
from auth.session import SessionAuthenticator, bearer_token


def get_authenticator(request: Request) -> SessionAuthenticator:
    return request.app.state.authenticator


def get_current_user(request: Request) -> User:
    """Require authentication. Raises AuthError (401) if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...

    The identity is also attached to request.state.user for downstream code.
    """
    authenticator = get_authenticator(request)
    token = bearer_token(request.headers.get("Authorization"))
    user = authenticator.authenticate(token)
    request.state.user = user
    return user


def restrict_to(*roles: Role | str) -> Callable[..., User]:
    """Return a dependency that only lets users with one of `roles` through.

        @router.delete("/tours/{tour_id}")
        def route(user: User = Depends(restrict_to(Role.admin, Role.lead_guide))): ...
    """
    allowed = tuple(Role.parse(r) for r in roles)

    def dependency(user: User = Depends(get_current_user)) -> User:
        authorize(user, allowed)
        return user

    return dependency
