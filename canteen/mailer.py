"""Outbound email for verification PINs.

The verification workflows receive a mailer at construction time. ``send``
returns True when the message was handed to a real transport and False when
running degraded (no transport configured), in which case the caller may
surface the PIN directly.
"""
import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from .config import Settings

logger = logging.getLogger(__name__)


class Mailer(Protocol):
    def send(self, to: str, subject: str, body: str) -> bool:
        ...


class SmtpMailer:
    def __init__(self, host: str, port: int, sender: str, username=None, password=None, use_tls: bool = True, timeout: float = 10.0):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, to: str, subject: str, body: str) -> bool:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(msg)
        logger.info("sent '%s' to %s via %s", subject, to, self.host)
        return True


class DegradedMailer:
    """Stand-in used when no mail transport is configured; nothing is delivered."""

    def send(self, to: str, subject: str, body: str) -> bool:
        logger.warning("email not configured, skipped '%s' to %s", subject, to)
        return False


def build_mailer(settings: Settings) -> Mailer:
    if not settings.mail_host:
        return DegradedMailer()
    return SmtpMailer(
        settings.mail_host,
        settings.mail_port,
        settings.mail_from,
        username=settings.mail_username,
        password=settings.mail_password,
        use_tls=settings.mail_use_tls,
    )


def pin_email(name: str, pin: str, ttl_minutes: int) -> tuple:
    subject = "Your Cans & Teens Verification PIN"
    body = (
        f"Hi {name},\n\n"
        f"Your verification PIN is: {pin}\n"
        f"This PIN will expire in {ttl_minutes} minutes.\n\n"
        "Use this PIN to complete your verification and start ordering!\n"
        "If you didn't request this, ignore this message.\n"
    )
    return subject, body
