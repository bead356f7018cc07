"""
core/errors.py -- Operational error taxonomy shared by every layer.

Each error carries its human-readable message AND its HTTP status code on the
same object. Services raise them; api/main.py has exactly one handler that
turns any AppError into the JSON envelope:

    {"status": "fail" | "error", "message": "..."}

"fail" is used for 4xx (the client did something wrong), "error" for 5xx.

Layer rule: no imports from api/, auth/, or tours/. Plain Python only, so
auth/ and tours/ can raise these without depending on FastAPI.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for errors that are safe to show to the client."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    @property
    def status(self) -> str:
        return "fail" if 400 <= self.status_code < 500 else "error"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, status_code={self.status_code})"


class ValidationError(AppError):
    status_code = 400


class AuthError(AppError):
    status_code = 401


class AuthzError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class DeliveryError(AppError):
    """Outbound email could not be handed to the mail server."""

    status_code = 500


class ServerError(AppError):
    """Unexpected failure; the handler never exposes the underlying exception."""

    status_code = 500
