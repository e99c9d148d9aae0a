"""Outbound email for password-reset links (SMTP, STARTTLS by default)."""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import TYPE_CHECKING
from urllib.parse import quote

from app.services.errors import DeliveryError

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

RESET_SUBJECT = "Password Reset Request"


def build_reset_url(base_url: str, token: str) -> str:
    """Client route that collects the new password, with the raw token as its last path segment."""
    return f"{base_url.rstrip('/')}/{quote(token, safe='')}"


def redact_email(email: str) -> str:
    """Redact an email address for logging to avoid PII leakage."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class NotificationDispatcher:
    """
    Delivers password-reset links by email.

    With no SMTP host configured (dev), the message is logged instead of
    sent. Any transport failure is raised as DeliveryError.
    """

    def __init__(
        self,
        *,
        smtp_host: str | None = None,
        smtp_port: int = 587,
        smtp_user: str | None = None,
        smtp_password: str | None = None,
        use_tls: bool = True,
        from_email: str | None = None,
        timeout: float = 30.0,
        reset_validity_hours: int = 24,
    ) -> None:
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.use_tls = use_tls
        self.from_email = from_email or smtp_user
        self.timeout = timeout
        self.reset_validity_hours = reset_validity_hours

    @classmethod
    def from_settings(cls, settings: Settings) -> NotificationDispatcher:
        return cls(
            smtp_host=settings.EMAIL_HOST,
            smtp_port=settings.EMAIL_PORT,
            smtp_user=settings.EMAIL_USER,
            smtp_password=settings.EMAIL_PASS.get_secret_value() if settings.EMAIL_PASS else None,
            use_tls=settings.EMAIL_USE_TLS,
            from_email=settings.EMAIL_FROM,
            timeout=settings.EMAIL_TIMEOUT_SEC,
            reset_validity_hours=settings.RESET_TOKEN_EXPIRE_HOURS,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.from_email)

    def send_password_reset(self, to_email: str, reset_url: str) -> None:
        text_body = (
            "You are receiving this because a password reset was initiated for your account.\n\n"
            "Open the following link to complete the process:\n"
            f"{reset_url}\n\n"
            f"The link will expire in {self.reset_validity_hours} hours.\n"
            "If you did not request this, please ignore this email.\n"
        )
        html_body = (
            "<p>You are receiving this because a password reset was initiated for your account.</p>"
            "<p>Please click on the following link, or paste this into your browser to complete the process:</p>"
            f'<a href="{reset_url}">{reset_url}</a>'
            f"<p>The link will expire in {self.reset_validity_hours} hours.</p>"
            "<p>If you did not request this, please ignore this email.</p>"
        )
        self._send(to_email, RESET_SUBJECT, html_body, text_body)

    def _send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        if not self.is_configured:
            logger.info(
                "Email transport not configured; logging message instead of sending",
                extra={"to": redact_email(to_email), "subject": subject},
            )
            return

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to_email
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        context = ssl.create_default_context()
        try:
            if self.use_tls:
                with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                    server.starttls(context=context)
                    if self.smtp_user and self.smtp_password:
                        server.login(self.smtp_user, self.smtp_password)
                    server.sendmail(self.from_email, [to_email], msg.as_string())
            else:
                with smtplib.SMTP_SSL(
                    self.smtp_host, self.smtp_port, context=context, timeout=self.timeout
                ) as server:
                    if self.smtp_user and self.smtp_password:
                        server.login(self.smtp_user, self.smtp_password)
                    server.sendmail(self.from_email, [to_email], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                "Email delivery failed",
                extra={
                    "to": redact_email(to_email),
                    "host": self.smtp_host,
                    "error_type": type(e).__name__,
                    "reason": str(e)[:500],
                },
            )
            raise DeliveryError() from e

        logger.info("Email sent", extra={"to": redact_email(to_email), "subject": subject})
