"""Email service for sending notifications."""

import asyncio
import logging
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from app.core.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Service for sending emails via SMTP."""

    def __init__(self):
        """Initialize email service with SMTP configuration."""
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_user = settings.smtp_user
        self.smtp_password = settings.smtp_password
        self.from_email = settings.email_from or settings.smtp_user

    def _validate_config(self) -> bool:
        """Validate email configuration."""
        if not all([self.smtp_host, self.smtp_user, self.smtp_password]):
            logger.warning("Email service not configured properly")
            return False
        return True

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str | None = None,
    ) -> bool:
        """Send an email via SMTP.

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML content of the email
            text_content: Plain text content (fallback)

        Returns:
            True if email sent successfully, False otherwise
        """
        if not self._validate_config():
            logger.error("Cannot send email - configuration invalid")
            return False

        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = f'"Project Manager" <{self.from_email}>'
            msg["To"] = to_email

            if text_content:
                msg.attach(MIMEText(text_content, "plain"))
            msg.attach(MIMEText(html_content, "html"))

            logger.info(f"Sending email to {to_email} with subject: {subject}")

            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg)

            logger.info(f"✅ Email sent successfully to {to_email}")
            return True

        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"❌ SMTP authentication failed: {str(e)}")
            return False
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"❌ SMTP error sending email: {str(e)}")
            return False

    async def send_email_async(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str | None = None,
    ) -> bool:
        """Run ``send_email`` in a worker thread so the event loop is not blocked."""
        return await asyncio.to_thread(
            self.send_email, to_email, subject, html_content, text_content
        )

    async def send_task_assignment(
        self,
        to_email: str,
        first_name: str | None,
        task_title: str,
        priority: str,
        due_date: datetime | None,
    ) -> bool:
        """Tell a user they were assigned to a new task."""
        html_content = self.render_task_assignment_html(first_name, task_title, priority, due_date)
        text_content = self.render_task_assignment_text(first_name, task_title, priority, due_date)
        # Header injection is rejected by the email package; keep the subject single-line
        subject = f"New Task Assigned: {' '.join(task_title.split())}"
        return await self.send_email_async(to_email, subject, html_content, text_content)

    def render_task_assignment_html(
        self,
        first_name: str | None,
        task_title: str,
        priority: str,
        due_date: datetime | None,
    ) -> str:
        """HTML body for a task assignment email. Every dynamic value is escaped."""
        name = escape(first_name or "Member")
        title = escape(task_title)
        priority_label = escape(str(priority))
        due = escape(self._format_due_date(due_date))

        return f"""
        <div style="font-family: Arial, sans-serif; color: #333;">
            <h2>New Task Assignment</h2>
            <p>Hi <strong>{name}</strong>,</p>
            <p>You have been assigned to a new task:</p>
            <blockquote style="border-left: 4px solid #2563eb; padding-left: 10px; margin: 20px 0;">
                <p><strong>Title:</strong> {title}</p>
                <p><strong>Priority:</strong> {priority_label}</p>
                <p><strong>Due Date:</strong> {due}</p>
            </blockquote>
            <p>Please check your dashboard for more details.</p>
            <p>Best regards,<br/>The Team</p>
        </div>
        """

    def render_task_assignment_text(
        self,
        first_name: str | None,
        task_title: str,
        priority: str,
        due_date: datetime | None,
    ) -> str:
        text = f"Hi {first_name or 'Member'},\n\nYou have been assigned to a new task:\n\n"
        text += f"Title: {task_title}\n"
        text += f"Priority: {priority}\n"
        text += f"Due Date: {self._format_due_date(due_date)}\n\n"
        text += "Please check your dashboard for more details.\n"
        return text

    def _format_due_date(self, due_date: datetime | None) -> str:
        if not due_date:
            return "No due date"
        return due_date.strftime("%B %d, %Y")


email_service = EmailService()
