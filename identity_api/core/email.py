"""
Transactional email delivery.

Sends mail over SMTP (STARTTLS or implicit SSL). When no SMTP host is
configured, messages are logged instead so local development works without
a mail server.
"""

import asyncio
import logging
import smtplib
import ssl
from html import escape
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from identity_api.config import Settings, settings as default_settings
from identity_api.core.exceptions import EmailDeliveryError

logger = logging.getLogger(__name__)


def redact_email(email: str) -> str:
    """Redact an email address for logging."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class EmailDispatcher:
    """SMTP email sender."""

    def __init__(
        self,
        smtp_host: str = "",
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        smtp_use_tls: bool = True,
        from_email: str = "",
        from_name: str = "Identity",
        timeout: int = 30,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.smtp_use_tls = smtp_use_tls
        self.from_email = from_email or smtp_user
        self.from_name = from_name
        self.timeout = timeout

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "EmailDispatcher":
        config = config or default_settings
        return cls(
            smtp_host=config.smtp_host,
            smtp_port=config.smtp_port,
            smtp_user=config.smtp_user,
            smtp_password=config.smtp_password,
            smtp_use_tls=config.smtp_use_tls,
            from_email=config.email_from,
            from_name=config.email_from_name,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.from_email)

    def _build_message(
        self, to: str, subject: str, html_body: str, text_body: str
    ) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))
        return msg

    def _deliver(self, to: str, msg: MIMEMultipart) -> None:
        context = ssl.create_default_context()
        if self.smtp_use_tls:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                server.starttls(context=context)
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.from_email, to, msg.as_string())
        else:
            with smtplib.SMTP_SSL(
                self.smtp_host, self.smtp_port, context=context, timeout=self.timeout
            ) as server:
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.from_email, to, msg.as_string())

    async def send(self, to: str, subject: str, html_body: str, text_body: str) -> None:
        """
        Send one email.

        Raises:
            EmailDeliveryError: If the SMTP exchange fails
        """
        if not self.is_configured:
            logger.info(
                f"SMTP not configured; email to {redact_email(to)} not sent "
                f"(subject: {subject!r})"
            )
            return

        msg = self._build_message(to, subject, html_body, text_body)
        try:
            await asyncio.to_thread(self._deliver, to, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {redact_email(to)}: {e}")
            raise EmailDeliveryError(f"SMTP delivery failed: {e}") from e

        logger.info(f"Email sent to {redact_email(to)}: {subject}")


# ============ Templates ============

_HTML_LAYOUT = """<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
      <h1>{title}</h1>
      {content}
    </div>
  </body>
</html>"""


def _otp_block(otp: str, expires_minutes: int) -> str:
    return (
        f'<p style="font-size: 32px; font-weight: bold; letter-spacing: 5px;">{otp}</p>'
        f"<p><strong>This code expires in {expires_minutes} minutes.</strong></p>"
    )


async def send_verification_email(
    dispatcher: EmailDispatcher, to: str, otp: str, expires_minutes: int
) -> None:
    html = _HTML_LAYOUT.format(
        title="Verify your email",
        content=(
            "<p>Please verify your email address using the code below:</p>"
            + _otp_block(otp, expires_minutes)
            + "<p>If you didn't sign up for this account, please ignore this email.</p>"
        ),
    )
    text = (
        f"Your verification code is: {otp}. "
        f"This code expires in {expires_minutes} minutes."
    )
    await dispatcher.send(to, "Verify your email", html, text)


async def send_password_reset_email(
    dispatcher: EmailDispatcher, to: str, otp: str, expires_minutes: int
) -> None:
    html = _HTML_LAYOUT.format(
        title="Reset your password",
        content=(
            "<p>Use the code below to reset your password:</p>"
            + _otp_block(otp, expires_minutes)
            + "<p>If you didn't request a password reset, you can ignore this email.</p>"
        ),
    )
    text = (
        f"Your password reset code is: {otp}. "
        f"This code expires in {expires_minutes} minutes."
    )
    await dispatcher.send(to, "Reset your password", html, text)


async def send_welcome_email(dispatcher: EmailDispatcher, to: str, first_name: str) -> None:
    html = _HTML_LAYOUT.format(
        title=f"Welcome, {escape(first_name)}!",
        content="<p>Your email is verified and your account is ready.</p>",
    )
    text = f"Welcome, {first_name}! Your email is verified and your account is ready."
    await dispatcher.send(to, "Welcome", html, text)
