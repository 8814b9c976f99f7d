"""Unit tests for Email Service."""

import smtplib
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from app.services.email_service import EmailService


class TestEmailService:
    """Test cases for EmailService."""

    @pytest.fixture
    def email_service(self):
        """Create a configured email service instance."""
        service = EmailService()
        service.smtp_host = "smtp.test.com"
        service.smtp_port = 587
        service.smtp_user = "test@test.com"
        service.smtp_password = "password"
        service.from_email = "noreply@test.com"
        return service

    def test_html_escapes_user_content(self, email_service):
        html = email_service.render_task_assignment_html(
            "<b>Eve</b>", '<script>alert("x")</script>', "<HIGH>", None
        )

        assert "<script>" not in html
        assert "&lt;script&gt;" in html
        assert "&lt;b&gt;Eve&lt;/b&gt;" in html
        assert "&lt;HIGH&gt;" in html
        assert "No due date" in html

    def test_text_body_formats_due_date(self, email_service):
        text = email_service.render_task_assignment_text(
            None, "Write docs", "LOW", datetime(2030, 3, 5)
        )
        assert "Hi Member" in text
        assert "March 05, 2030" in text

    def test_send_email_success(self, email_service):
        with patch("app.services.email_service.smtplib.SMTP") as mock_smtp:
            server = MagicMock()
            mock_smtp.return_value.__enter__.return_value = server

            assert email_service.send_email("user@test.com", "Hi", "<p>Hi</p>", "Hi") is True
            server.login.assert_called_once_with("test@test.com", "password")
            server.send_message.assert_called_once()

    def test_send_email_smtp_error(self, email_service):
        with patch("app.services.email_service.smtplib.SMTP") as mock_smtp:
            server = MagicMock()
            server.send_message.side_effect = smtplib.SMTPException("SMTP Error")
            mock_smtp.return_value.__enter__.return_value = server

            assert email_service.send_email("user@test.com", "Hi", "<p>Hi</p>") is False

    def test_send_email_not_configured(self, email_service):
        email_service.smtp_host = None
        with patch("app.services.email_service.smtplib.SMTP") as mock_smtp:
            assert email_service.send_email("user@test.com", "Hi", "<p>Hi</p>") is False
            mock_smtp.assert_not_called()

    @pytest.mark.asyncio
    async def test_send_task_assignment_single_line_subject(self, email_service):
        with patch.object(email_service, "send_email", return_value=True) as mock_send:
            result = await email_service.send_task_assignment(
                "user@test.com", "Mia", "Fix\nlogin bug", "HIGH", None
            )

        assert result is True
        subject = mock_send.call_args.args[1]
        assert subject == "New Task Assigned: Fix login bug"
