"""Outbound email for verification and password reset codes."""
from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from datetime import datetime
from email.message import EmailMessage
from typing import Protocol

from .config import Settings
from .errors import DeliveryError

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send_verification_code(self, email: str, name: str, code: str) -> None: ...

    async def send_password_reset_code(self, email: str, name: str, code: str) -> None: ...


def _purpose_strings(purpose: str, brand: str) -> tuple[str, str]:
    if purpose == "password_reset":
        return (
            f"Your {brand} password reset code",
            "Use the code below to reset your password",
        )
    return (
        "Verify your email",
        "Thanks for signing up! Please use the verification code below to complete your registration",
    )


def _build_html_email(name: str, code: str, message_line: str, ttl_minutes: int, brand: str) -> str:
    return f"""
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Helvetica, Arial, sans-serif; line-height: 1.6; color: #333; margin: 0; padding: 0; background-color: #f5f5f5;">
    <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="max-width: 600px; margin: 0 auto;">
        <tr>
            <td style="padding: 30px; background-color: #ffffff; border-radius: 10px;">
                <p style="margin: 0 0 20px 0;">Hello <strong>{name}</strong>,</p>
                <p style="margin: 0 0 20px 0;">{message_line}:</p>
                <div style="text-align: center; padding: 16px 30px; background-color: #f2f6fc; border-radius: 8px; font-size: 26px; font-weight: bold; letter-spacing: 6px;">
                    {code}
                </div>
                <p style="margin: 20px 0 0 0; color: #808080; font-size: 14px; text-align: center;">
                    This code expires in {ttl_minutes} minutes.
                </p>
                <p style="margin: 20px 0 0 0; color: #606060; font-size: 13px;">
                    If you didn't request this code, you can safely ignore this email.
                </p>
                <p style="margin: 20px 0 0 0; color: #505050; font-size: 12px; text-align: center;">
                    &copy; {datetime.utcnow().year} {brand}
                </p>
            </td>
        </tr>
    </table>
</body>
</html>
"""


class SmtpNotifier:
    """Sends codes through an SMTP relay; every failure becomes ``DeliveryError``."""

    def __init__(self, settings: Settings) -> None:
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.user = settings.smtp_user
        self.password = settings.smtp_password
        self.email_from = settings.email_from or settings.smtp_user
        self.from_name = settings.email_from_name
        self.ttl_minutes = settings.code_expires_minutes

    def _send_email(self, to: str, subject: str, body: str, html_body: str | None = None) -> None:
        if not all([self.host, self.port, self.user, self.password, self.email_from]):
            raise DeliveryError("SMTP configuration missing")

        msg = EmailMessage()
        msg["From"] = f"{self.from_name} <{self.email_from}>"
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)
        if html_body:
            msg.add_alternative(html_body, subtype="html")

        context = ssl.create_default_context()
        if self.port == 465:
            with smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=15) as server:
                server.login(self.user, self.password)
                server.send_message(msg, from_addr=self.email_from, to_addrs=[to])
        else:
            with smtplib.SMTP(self.host, self.port, timeout=15) as server:
                server.starttls(context=context)
                server.login(self.user, self.password)
                server.send_message(msg, from_addr=self.email_from, to_addrs=[to])

    async def _deliver(self, purpose: str, email: str, name: str, code: str) -> None:
        subject, line = _purpose_strings(purpose, self.from_name)
        plain_body = (
            f"Hello {name},\n\n"
            f"{line}: {code}\n"
            f"It expires in {self.ttl_minutes} minutes.\n\n"
            f"If you didn't request this, you can safely ignore this email.\n"
        )
        html_body = _build_html_email(name, code, line, self.ttl_minutes, self.from_name)
        try:
            await asyncio.to_thread(self._send_email, email, subject, plain_body, html_body)
        except DeliveryError:
            logger.error(f"Cannot send {purpose} email: SMTP configuration missing")
            raise
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(f"Error sending {purpose} email: {exc}")
            raise DeliveryError() from exc
        logger.info(f"Sent {purpose} email")

    async def send_verification_code(self, email: str, name: str, code: str) -> None:
        await self._deliver("verification", email, name, code)

    async def send_password_reset_code(self, email: str, name: str, code: str) -> None:
        await self._deliver("password_reset", email, name, code)


class LoggingNotifier:
    """Development notifier: records that a message would have been sent."""

    async def send_verification_code(self, email: str, name: str, code: str) -> None:
        logger.info(f"[console email] verification code issued for {email}")

    async def send_password_reset_code(self, email: str, name: str, code: str) -> None:
        logger.info(f"[console email] password reset code issued for {email}")


def build_notifier(settings: Settings) -> Notifier:
    if settings.email_backend == "console":
        return LoggingNotifier()
    return SmtpNotifier(settings)
