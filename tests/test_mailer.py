"""Unit tests for auth/mailer.py. smtplib.SMTP is mocked; nothing leaves the process."""

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from auth.mailer import EmailMessage, LogMailer, SMTPMailer, build_mailer
from core.errors import DeliveryError

_MESSAGE = EmailMessage(to="amy@example.com", subject="Hello", body="Reset link: http://x/y")


def _smtp_mock() -> tuple[MagicMock, MagicMock]:
    """Return (SMTP class mock, connection mock) wired for use as a context manager."""
    conn = MagicMock()
    smtp_cls = MagicMock()
    smtp_cls.return_value.__enter__.return_value = conn
    return smtp_cls, conn


class TestSMTPMailer:
    def test_send_uses_starttls_and_login(self):
        smtp_cls, conn = _smtp_mock()
        mailer = SMTPMailer("smtp.example.com", 587, "Tours <no-reply@example.com>", "user", "secret")

        with patch("auth.mailer.smtplib.SMTP", smtp_cls):
            mailer.send(_MESSAGE)

        smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=10.0)
        conn.starttls.assert_called_once()
        conn.login.assert_called_once_with("user", "secret")
        sent = conn.send_message.call_args.args[0]
        assert sent["To"] == "amy@example.com"
        assert sent["Subject"] == "Hello"
        assert sent["From"] == "Tours <no-reply@example.com>"
        assert "Reset link" in sent.get_content()

    def test_send_without_tls_or_credentials(self):
        smtp_cls, conn = _smtp_mock()
        mailer = SMTPMailer("localhost", 25, "no-reply@example.com", use_tls=False)

        with patch("auth.mailer.smtplib.SMTP", smtp_cls):
            mailer.send(_MESSAGE)

        conn.starttls.assert_not_called()
        conn.login.assert_not_called()
        conn.send_message.assert_called_once()

    @pytest.mark.parametrize(
        "error",
        [smtplib.SMTPAuthenticationError(535, b"bad credentials"), ConnectionRefusedError("refused")],
    )
    def test_failures_become_delivery_error(self, error):
        smtp_cls, conn = _smtp_mock()
        conn.login.side_effect = error
        mailer = SMTPMailer("smtp.example.com", 587, "no-reply@example.com", "user", "secret")

        with patch("auth.mailer.smtplib.SMTP", smtp_cls):
            with pytest.raises(DeliveryError) as exc_info:
                mailer.send(_MESSAGE)

        assert exc_info.value.status_code == 500
        assert "error sending the email" in exc_info.value.message


class TestLogMailer:
    def test_keeps_sent_messages(self):
        mailer = LogMailer()
        mailer.send(_MESSAGE)
        assert mailer.sent == [_MESSAGE]


class TestBuildMailer:
    def test_no_smtp_host_gives_log_mailer(self, settings):
        assert isinstance(build_mailer(settings), LogMailer)

    def test_smtp_host_gives_smtp_mailer(self, settings):
        configured = settings.model_copy(update={"smtp_host": "smtp.example.com", "smtp_port": 2525})
        mailer = build_mailer(configured)
        assert isinstance(mailer, SMTPMailer)
        assert mailer.host == "smtp.example.com"
        assert mailer.port == 2525
