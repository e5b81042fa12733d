"""
Email service for sending transactional emails.

Supports Resend and SendGrid over their HTTP APIs, or plain SMTP.
Falls back to console logging in development if nothing is configured.
"""

import asyncio
import logging
import re
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

import httpx
from jinja2 import Environment, PackageLoader, select_autoescape

from persona_insights.models.invitation import Invitation, InvitationType
from persona_insights.models.profile import Profile
from persona_insights.settings import settings

logger = logging.getLogger(__name__)

templates = Environment(
    loader=PackageLoader("persona_insights", "templates"),
    autoescape=select_autoescape(["html"]),
)


class EmailService:
    """Email service supporting API-based providers and SMTP."""

    def __init__(self):
        self.resend_api_key = settings.resend_api_key
        self.sendgrid_api_key = settings.sendgrid_api_key
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_username = settings.smtp_username
        self.smtp_password = settings.smtp_password
        self.smtp_use_tls = settings.smtp_use_tls
        self.from_email = settings.email_from_address
        self.from_name = settings.email_from_name

    @property
    def is_configured(self) -> bool:
        """Check if any email provider is configured."""
        return bool(self.resend_api_key or self.sendgrid_api_key or self.smtp_host)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str | None = None,
        reply_to: str | None = None,
    ) -> bool:
        """
        Send an email using the configured provider.

        Args:
            to_email: Recipient email address
            subject: Email subject line
            html_content: HTML body of the email
            text_content: Plain text fallback (generated from the HTML if omitted)
            reply_to: Reply-to email address

        Returns:
            True if email was sent successfully, False otherwise
        """
        if not text_content:
            text_content = re.sub(r'<[^>]+>', '', html_content)
            text_content = text_content.replace('&nbsp;', ' ')
            text_content = re.sub(r'\s+', ' ', text_content).strip()

        if self.resend_api_key:
            return await self._send_via_resend(to_email, subject, html_content, text_content, reply_to)

        if self.sendgrid_api_key:
            return await self._send_via_sendgrid(to_email, subject, html_content, text_content, reply_to)

        if self.smtp_host:
            return await self._send_via_smtp(to_email, subject, html_content, text_content, reply_to)

        logger.warning(
            "No email provider configured. Email would have been sent:\n"
            f"  To: {to_email}\n"
            f"  Subject: {subject}\n"
            f"  Preview: {text_content[:200]}..."
        )
        return False

    async def _send_via_resend(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str,
        reply_to: str | None,
    ) -> bool:
        """Send email via the Resend API."""
        payload: dict[str, Any] = {
            "from": f"{self.from_name} <{self.from_email}>",
            "to": [to_email],
            "subject": subject,
            "html": html_content,
            "text": text_content,
        }
        if reply_to:
            payload["reply_to"] = reply_to

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(
                    "https://api.resend.com/emails",
                    headers={"Authorization": f"Bearer {self.resend_api_key}"},
                    json=payload,
                )
        except httpx.HTTPError as e:
            logger.error(f"Failed to send email via Resend: {e}")
            return False

        if response.status_code in (200, 201, 202):
            logger.info(f"Email sent via Resend to {to_email}")
            return True
        logger.error(f"Resend error: {response.status_code} - {response.text}")
        return False

    async def _send_via_sendgrid(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str,
        reply_to: str | None,
    ) -> bool:
        """Send email via SendGrid API."""
        payload: dict[str, Any] = {
            "personalizations": [{"to": [{"email": to_email}]}],
            "from": {"email": self.from_email, "name": self.from_name},
            "subject": subject,
            "content": [
                {"type": "text/plain", "value": text_content},
                {"type": "text/html", "value": html_content},
            ],
        }
        if reply_to:
            payload["reply_to"] = {"email": reply_to}

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(
                    "https://api.sendgrid.com/v3/mail/send",
                    headers={"Authorization": f"Bearer {self.sendgrid_api_key}"},
                    json=payload,
                )
        except httpx.HTTPError as e:
            logger.error(f"Failed to send email via SendGrid: {e}")
            return False

        if response.status_code in (200, 202):
            logger.info(f"Email sent via SendGrid to {to_email}")
            return True
        logger.error(f"SendGrid error: {response.status_code} - {response.text}")
        return False

    async def _send_via_smtp(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str,
        reply_to: str | None,
    ) -> bool:
        """Send email via SMTP."""
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = f"{self.from_name} <{self.from_email}>"
        msg['To'] = to_email
        if reply_to:
            msg['Reply-To'] = reply_to
        msg.attach(MIMEText(text_content, 'plain'))
        msg.attach(MIMEText(html_content, 'html'))

        # Run SMTP in thread pool to not block async
        def send_sync():
            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                if self.smtp_use_tls:
                    server.starttls()
                if self.smtp_username and self.smtp_password:
                    server.login(self.smtp_username, self.smtp_password)
                server.sendmail(self.from_email, [to_email], msg.as_string())

        try:
            await asyncio.get_running_loop().run_in_executor(None, send_sync)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email via SMTP: {e}")
            return False

        logger.info(f"Email sent via SMTP to {to_email}")
        return True


# Global email service instance
email_service = EmailService()


def render_invitation_email(invitation: Invitation, inviter: Profile) -> tuple[str, str]:
    """Build (subject, html) for an invitation email."""
    if invitation.invitation_type == InvitationType.MANAGER_REQUEST:
        subject = f"{inviter.display_label} wants you to be their manager on {settings.app_name}"
        template = templates.get_template("email/manager_request.html")
    else:
        team_name = inviter.team_name or inviter.default_team_name
        subject = f"You've been invited to join {team_name} on {settings.app_name}"
        template = templates.get_template("email/team_join.html")

    html = template.render(
        app_name=settings.app_name,
        inviter_name=inviter.display_label,
        team_name=inviter.team_name or inviter.default_team_name,
        message=invitation.message,
        accept_url=invitation.get_accept_url(settings.base_url),
        decline_url=invitation.get_decline_url(settings.base_url),
        expire_days=settings.invitation_expire_days,
    )
    return subject, html


async def send_invitation_email(invitation: Invitation, inviter: Profile) -> bool:
    """
    Send the accept/decline email for an invitation.

    Returns:
        True if email was sent successfully
    """
    subject, html_content = render_invitation_email(invitation, inviter)
    return await email_service.send_email(
        to_email=invitation.email,
        subject=subject,
        html_content=html_content,
        reply_to=inviter.email,
    )
