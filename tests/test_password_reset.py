"""Unit tests for auth/reset.py -- PasswordResetFlow.

Covers:
- forgot_password stores only the digest and emails the plaintext in a URL
- reset_password sets the password, clears the reset fields, logs in
- expired, tampered and reused tokens fail with AuthError
- a failed email clears the reset fields again
- unknown email is a 404
"""

from __future__ import annotations

import re

import pytest

from auth.reset import PasswordResetFlow
from auth.session import SessionAuthenticator
from auth.tokens import hash_reset_token
from core.errors import AuthError, DeliveryError, NotFoundError, ValidationError

_BASE = "http://testserver/api/v1/users/resetPassword"
_TOKEN_RE = re.compile(r"resetPassword/([0-9a-f]{64})")


def _token_from(mailer) -> str:
    match = _TOKEN_RE.search(mailer.sent[-1].body)
    assert match, f"No reset URL in email body: {mailer.sent[-1].body!r}"
    return match.group(1)


class _FailingMailer:
    def send(self, message):
        raise DeliveryError("There was an error sending the email. Try again later!")


class TestForgotPassword:
    def test_email_contains_reset_url(self, reset_flow, mailer, make_user):
        make_user("amy@example.com")
        reset_flow.forgot_password("amy@example.com", _BASE)

        assert len(mailer.sent) == 1
        message = mailer.sent[0]
        assert message.to == "amy@example.com"
        assert "valid for 10 minutes" in message.subject
        assert f"{_BASE}/" in message.body

    def test_only_digest_is_stored(self, reset_flow, mailer, user_store, make_user):
        user = make_user("amy@example.com")
        reset_flow.forgot_password("amy@example.com", _BASE)
        raw = _token_from(mailer)

        stored = user_store.get_by_id(user.id)
        assert stored.password_reset_token == hash_reset_token(raw)
        assert stored.password_reset_token != raw
        assert stored.password_reset_expires is not None

    def test_unknown_email_is_404(self, reset_flow, mailer):
        with pytest.raises(NotFoundError, match="There is no user with that email address."):
            reset_flow.forgot_password("nobody@example.com", _BASE)
        assert mailer.sent == []

    def test_delivery_failure_clears_reset_fields(self, settings, user_store, authenticator, make_user):
        user = make_user("amy@example.com")
        flow = PasswordResetFlow(settings, user_store, _FailingMailer(), authenticator)

        with pytest.raises(DeliveryError):
            flow.forgot_password("amy@example.com", _BASE)

        stored = user_store.get_by_id(user.id)
        assert stored.password_reset_token is None
        assert stored.password_reset_expires is None


class TestResetPassword:
    def test_happy_path(self, reset_flow, mailer, user_store, authenticator, make_user):
        user = make_user("amy@example.com")
        reset_flow.forgot_password("amy@example.com", _BASE)

        session = reset_flow.reset_password(_token_from(mailer), "newpass99", "newpass99")

        assert session.user.id == user.id
        assert authenticator.authenticate(session.token).id == user.id
        stored = user_store.get_by_id(user.id)
        assert stored.password_reset_token is None
        assert stored.password_reset_expires is None
        assert stored.password_changed_at is not None
        assert authenticator.login("amy@example.com", "newpass99").user.id == user.id

    def test_reset_invalidates_earlier_sessions(self, reset_flow, mailer, authenticator, make_user):
        user = make_user("amy@example.com")
        old_token = authenticator.issue_session(user).token
        reset_flow.forgot_password("amy@example.com", _BASE)

        reset_flow.reset_password(_token_from(mailer), "newpass99", "newpass99")

        with pytest.raises(AuthError, match="recently changed password"):
            authenticator.authenticate(old_token)

    def test_expired_token(self, settings, user_store, mailer, make_user, clock):
        authenticator = SessionAuthenticator(settings, user_store, clock=clock)
        flow = PasswordResetFlow(settings, user_store, mailer, authenticator, clock=clock)
        make_user("amy@example.com")
        flow.forgot_password("amy@example.com", _BASE)

        clock.advance(minutes=10, seconds=1)

        with pytest.raises(AuthError, match="Token is invalid or has expired"):
            flow.reset_password(_token_from(mailer), "newpass99", "newpass99")

    def test_token_just_inside_window(self, settings, user_store, mailer, make_user, clock):
        authenticator = SessionAuthenticator(settings, user_store, clock=clock)
        flow = PasswordResetFlow(settings, user_store, mailer, authenticator, clock=clock)
        make_user("amy@example.com")
        flow.forgot_password("amy@example.com", _BASE)

        clock.advance(minutes=9, seconds=59)

        assert flow.reset_password(_token_from(mailer), "newpass99", "newpass99").token

    def test_tampered_token(self, reset_flow, mailer, make_user):
        make_user("amy@example.com")
        reset_flow.forgot_password("amy@example.com", _BASE)
        raw = _token_from(mailer)
        tampered = raw[:-1] + ("0" if raw[-1] != "0" else "1")

        with pytest.raises(AuthError, match="Token is invalid or has expired"):
            reset_flow.reset_password(tampered, "newpass99", "newpass99")

    def test_token_is_single_use(self, reset_flow, mailer, make_user):
        make_user("amy@example.com")
        reset_flow.forgot_password("amy@example.com", _BASE)
        raw = _token_from(mailer)
        reset_flow.reset_password(raw, "newpass99", "newpass99")

        with pytest.raises(AuthError):
            reset_flow.reset_password(raw, "another99", "another99")

    def test_second_request_replaces_first_token(self, reset_flow, mailer, make_user):
        make_user("amy@example.com")
        reset_flow.forgot_password("amy@example.com", _BASE)
        first = _token_from(mailer)
        reset_flow.forgot_password("amy@example.com", _BASE)

        with pytest.raises(AuthError):
            reset_flow.reset_password(first, "newpass99", "newpass99")
        assert reset_flow.reset_password(_token_from(mailer), "newpass99", "newpass99").token

    def test_invalid_new_password_keeps_token_pending(self, reset_flow, mailer, make_user):
        make_user("amy@example.com")
        reset_flow.forgot_password("amy@example.com", _BASE)
        raw = _token_from(mailer)

        with pytest.raises(ValidationError):
            reset_flow.reset_password(raw, "short", "short")
        assert reset_flow.reset_password(raw, "newpass99", "newpass99").token
