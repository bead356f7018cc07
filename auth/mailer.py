"""
auth/mailer.py -- Outbound email for the password reset flow.

Two implementations of the same small interface:
  SMTPMailer -- hands the message to an SMTP relay via smtplib.
  LogMailer  -- writes the message to the log. Used when SMTP_HOST is unset,
                which is the normal local-development setup.

Both raise core.errors.DeliveryError when the message cannot be handed off,
so PasswordResetFlow only ever needs to catch one exception type.

Layer rule: no imports from api/ or tours/.
"""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage as MIMEMessage
from typing import Protocol

from core.config import Settings
from core.errors import DeliveryError

logger = logging.getLogger("tours.mailer")


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    body: str


class Mailer(Protocol):
    def send(self, message: EmailMessage) -> None: ...


class SMTPMailer:
    """Deliver messages through an SMTP server."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, message: EmailMessage) -> None:
        mime = MIMEMessage()
        mime["From"] = self.sender
        mime["To"] = message.to
        mime["Subject"] = message.subject
        mime.set_content(message.body)

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.send_message(mime)
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError("There was an error sending the email. Try again later!") from exc
        logger.info("Sent email %r via %s:%d", message.subject, self.host, self.port)


class LogMailer:
    """Write messages to the log instead of sending them.

    sent keeps every message in memory so tests and local tooling can read
    the reset URL back out.
    """

    def __init__(self) -> None:
        self.sent: list[EmailMessage] = []

    def send(self, message: EmailMessage) -> None:
        self.sent.append(message)
        logger.info("Email to %s: %s\n%s", message.to, message.subject, message.body)


def build_mailer(settings: Settings) -> Mailer:
    """Return an SMTPMailer when SMTP_HOST is configured, otherwise a LogMailer."""
    if settings.smtp_host:
        return SMTPMailer(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.email_from,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
        )
    logger.warning("SMTP_HOST not set -- outgoing email will be written to the log")
    return LogMailer()
