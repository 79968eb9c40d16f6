"""
Unit tests for the email dispatcher and templates.
"""

import smtplib
from unittest.mock import AsyncMock, patch

import pytest

from identity_api.core.email import (
    EmailDispatcher,
    redact_email,
    send_password_reset_email,
    send_verification_email,
    send_welcome_email,
)
from identity_api.core.exceptions import EmailDeliveryError


@pytest.fixture
def configured() -> EmailDispatcher:
    return EmailDispatcher(
        smtp_host="smtp.example.com",
        smtp_port=587,
        smtp_user="mailer@example.com",
        smtp_password="secret",
        from_email="no-reply@example.com",
    )


class TestRedactEmail:
    def test_keeps_domain(self):
        assert redact_email("alice@example.com") == "al***@example.com"

    def test_not_an_email(self):
        assert redact_email("nobody") == "redacted"


class TestEmailDispatcher:
    """Tests for SMTP delivery."""

    def test_unconfigured_by_default(self):
        assert EmailDispatcher().is_configured is False

    def test_from_email_falls_back_to_user(self):
        dispatcher = EmailDispatcher(smtp_host="smtp.example.com", smtp_user="me@example.com")

        assert dispatcher.from_email == "me@example.com"
        assert dispatcher.is_configured is True

    @pytest.mark.asyncio
    async def test_unconfigured_send_only_logs(self):
        """Test development mode never opens an SMTP connection."""
        with patch("identity_api.core.email.smtplib.SMTP") as mock_smtp:
            await EmailDispatcher().send("a@example.com", "Hi", "<p>Hi</p>", "Hi")

        mock_smtp.assert_not_called()

    @pytest.mark.asyncio
    async def test_send_over_starttls(self, configured):
        with patch("identity_api.core.email.smtplib.SMTP") as mock_smtp:
            await configured.send("a@example.com", "Hi", "<p>Hi</p>", "Hi")

        mock_smtp.assert_called_once_with("smtp.example.com", 587, timeout=30)
        server = mock_smtp.return_value.__enter__.return_value
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("mailer@example.com", "secret")
        from_addr, to_addr, body = server.sendmail.call_args.args
        assert from_addr == "no-reply@example.com"
        assert to_addr == "a@example.com"
        assert "Subject: Hi" in body

    @pytest.mark.asyncio
    async def test_smtp_failure_raises_delivery_error(self, configured):
        with patch("identity_api.core.email.smtplib.SMTP") as mock_smtp:
            server = mock_smtp.return_value.__enter__.return_value
            server.sendmail.side_effect = smtplib.SMTPException("rejected")

            with pytest.raises(EmailDeliveryError):
                await configured.send("a@example.com", "Hi", "<p>Hi</p>", "Hi")

    @pytest.mark.asyncio
    async def test_connection_failure_raises_delivery_error(self, configured):
        with patch("identity_api.core.email.smtplib.SMTP", side_effect=OSError("refused")):
            with pytest.raises(EmailDeliveryError):
                await configured.send("a@example.com", "Hi", "<p>Hi</p>", "Hi")


class TestTemplates:
    @pytest.mark.asyncio
    async def test_verification_email(self):
        dispatcher = AsyncMock()

        await send_verification_email(dispatcher, "a@example.com", "123456", 15)

        to, subject, html_body, text_body = dispatcher.send.await_args.args
        assert subject == "Verify your email"
        assert "123456" in html_body
        assert "Your verification code is: 123456" in text_body
        assert "15 minutes" in text_body

    @pytest.mark.asyncio
    async def test_password_reset_email(self):
        dispatcher = AsyncMock()

        await send_password_reset_email(dispatcher, "a@example.com", "654321", 30)

        _, subject, _, text_body = dispatcher.send.await_args.args
        assert subject == "Reset your password"
        assert "654321" in text_body
        assert "30 minutes" in text_body

    @pytest.mark.asyncio
    async def test_welcome_email_escapes_name(self):
        dispatcher = AsyncMock()

        await send_welcome_email(dispatcher, "a@example.com", "<b>Eve</b>")

        html_body = dispatcher.send.await_args.args[2]
        assert "<b>Eve</b>" not in html_body
        assert "&lt;b&gt;Eve&lt;/b&gt;" in html_body
