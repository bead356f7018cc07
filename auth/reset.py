"""
auth/reset.py -- Forgot-password / reset-password flow.

Per-identity state machine:

    IDLE --forgot_password--> PENDING_RESET --reset_password (in window)--> IDLE
                                   |
                                   +-- window elapses --> token unusable
                                       (fields stay until overwritten)

Only the SHA-256 digest of the reset token is stored. The plaintext leaves
the server once, inside the reset URL in the email body. If the email cannot
be delivered the reset fields are cleared again, so a failed send never
leaves a pending reset nobody can complete.

Layer rule: no imports from api/ or tours/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from auth.mailer import EmailMessage, Mailer
from auth.models import User
from auth.session import Session, SessionAuthenticator, utcnow
from auth.store import UserStore
from auth.tokens import generate_reset_token, hash_reset_token
from core.config import Settings
from core.errors import AuthError, DeliveryError, NotFoundError

logger = logging.getLogger("tours.auth.reset")


class PasswordResetFlow:
    def __init__(
        self,
        settings: Settings,
        store: UserStore,
        mailer: Mailer,
        authenticator: SessionAuthenticator,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.settings = settings
        self.store = store
        self.mailer = mailer
        self.authenticator = authenticator
        self.clock = clock

    @property
    def window(self) -> timedelta:
        return timedelta(minutes=self.settings.reset_token_expire_minutes)

    def create_reset_token(self, user: User) -> str:
        """Put `user` into the pending-reset state in memory and return the plaintext token."""
        raw = generate_reset_token()
        user.password_reset_token = hash_reset_token(raw)
        user.password_reset_expires = self.clock() + self.window
        return raw

    def forgot_password(self, email: str, reset_url_base: str) -> None:
        """Email a reset link to the owner of `email`.

        reset_url_base is the absolute URL of the reset endpoint without the
        token, e.g. "https://host/api/v1/users/resetPassword".
        """
        user = self.store.get_by_email(email or "")
        if user is None:
            raise NotFoundError("There is no user with that email address.")

        raw = self.create_reset_token(user)
        self.store.save(user)

        reset_url = f"{reset_url_base.rstrip('/')}/{raw}"
        minutes = self.settings.reset_token_expire_minutes
        message = EmailMessage(
            to=user.email,
            subject=f"Your password reset token (valid for {minutes} minutes)",
            body=(
                "Forgot your password? Submit a PATCH request with your new password "
                f"and passwordConfirm to: {reset_url}\n"
                "If you didn't forget your password, please ignore this email!"
            ),
        )

        try:
            self.mailer.send(message)
        except DeliveryError:
            user.clear_password_reset()
            self.store.save(user)
            logger.exception("Password reset email for user id=%s could not be delivered", user.id)
            raise

        logger.info("Password reset token issued for user id=%s", user.id)

    def reset_password(self, token: str, password: str, password_confirm: str) -> Session:
        """Consume a reset token, set the new password and log the user in."""
        user = self.store.get_by_reset_token(hash_reset_token(token or ""), self.clock())
        if user is None:
            raise AuthError("Token is invalid or has expired")

        self.authenticator.set_password(user, password, password_confirm)
        user.clear_password_reset()
        self.store.save(user)
        logger.info("Password reset completed for user id=%s", user.id)
        return self.authenticator.issue_session(user)
