"""
Transactional email: account verification and password reset links.
Mail is sent over SMTP when SMTP_HOST is configured and skipped otherwise.
Sending is best effort; callers get a bool and never an exception.
"""
from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage

from nexushub.core.config import settings

logger = logging.getLogger(__name__)


class EmailService:

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as smtp:
            if settings.SMTP_USE_TLS:
                smtp.starttls()
            if settings.SMTP_USERNAME:
                smtp.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD or "")
            smtp.send_message(message)

    async def send(self, *, to: str, subject: str, body: str) -> bool:
        if not settings.email_enabled:
            logger.info("Email disabled, not sending %r to %s", subject, to)
            return False

        message = EmailMessage()
        message["From"] = settings.EMAIL_FROM
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        try:
            await asyncio.to_thread(self._deliver, message)
        except Exception:
            logger.exception("Failed to send %r to %s", subject, to)
            return False
        return True

    async def send_verification_email(self, *, to: str, token: str) -> bool:
        link = f"{settings.FRONTEND_URL}/verify-email/{token}"
        return await self.send(
            to=to,
            subject=f"Verify your {settings.APP_NAME} account",
            body=f"Welcome to {settings.APP_NAME}!\n\nConfirm your email address:\n{link}\n",
        )

    async def send_password_reset_email(self, *, to: str, token: str) -> bool:
        link = f"{settings.FRONTEND_URL}/reset-password/{token}"
        return await self.send(
            to=to,
            subject=f"Reset your {settings.APP_NAME} password",
            body=(
                "A password reset was requested for your account.\n\n"
                f"Choose a new password within {settings.RESET_TOKEN_EXPIRE_MINUTES} "
                f"minutes:\n{link}\n\nIf this wasn't you, ignore this email.\n"
            ),
        )


email_service = EmailService()
