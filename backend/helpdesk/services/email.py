"""
Email service for ticket notifications.

WHAT: A provider-agnostic interface for sending transactional emails,
with bodies rendered from Jinja2 templates.

WHY: Ticket creation, status changes and comments notify the people
involved. The transport is an external collaborator: it can be slow or
down, so callers decide whether a failure matters (notifications swallow
it, the settings connection test reports it).

HOW: Uses the Resend HTTP API through httpx when RESEND_API_KEY is set,
and a recording mock provider otherwise.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, List

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape, TemplateNotFound

from helpdesk.core.config import settings
from helpdesk.core.exceptions import EmailServiceError

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"


class EmailType(str, Enum):
    """Types of transactional emails, used for logging."""

    TICKET_CREATED = "ticket_created"
    TICKET_STATUS = "ticket_status"
    TICKET_COMMENT = "ticket_comment"
    CONNECTION_TEST = "connection_test"


@dataclass
class EmailMessage:
    """An email to be sent."""

    to_email: str
    subject: str
    html_content: str
    text_content: Optional[str] = None
    from_email: Optional[str] = None
    email_type: EmailType = EmailType.TICKET_CREATED
    metadata: Optional[Dict[str, Any]] = None


@dataclass
class EmailResult:
    """Result of an email send operation."""

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    provider: Optional[str] = None


# ============================================================================
# Email Provider Interface
# ============================================================================


class EmailProvider(ABC):
    """Abstract base class for email providers."""

    @abstractmethod
    async def send(self, message: EmailMessage) -> EmailResult:
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        pass


class ResendProvider(EmailProvider):
    """Resend email provider implementation."""

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key or settings.RESEND_API_KEY
        self._default_from = f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM}>"

    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def send(self, message: EmailMessage) -> EmailResult:
        """
        Send email via Resend API.

        Network errors and non-2xx answers are returned as a failed
        EmailResult, never raised.
        """
        if not self.is_configured():
            return EmailResult(
                success=False,
                error="Resend API key not configured",
                provider="resend",
            )

        try:
            async with httpx.AsyncClient(timeout=settings.COLLABORATOR_TIMEOUT_SECONDS) as client:
                response = await client.post(
                    "https://api.resend.com/emails",
                    headers={
                        "Authorization": f"Bearer {self._api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "from": message.from_email or self._default_from,
                        "to": [message.to_email],
                        "subject": message.subject,
                        "html": message.html_content,
                        "text": message.text_content,
                    },
                )

            if response.status_code in (200, 201):
                return EmailResult(
                    success=True,
                    message_id=response.json().get("id"),
                    provider="resend",
                )
            return EmailResult(
                success=False,
                error=f"Resend API error: {response.status_code}",
                provider="resend",
            )

        except httpx.HTTPError as e:
            logger.error(f"Resend send error: {e}")
            return EmailResult(success=False, error=str(e), provider="resend")


class MockEmailProvider(EmailProvider):
    """
    Mock email provider for testing and development.

    Logs emails instead of sending them and records them on the class.
    """

    sent_emails: List[EmailMessage] = []

    def is_configured(self) -> bool:
        return True

    async def send(self, message: EmailMessage) -> EmailResult:
        logger.info(
            f"[MOCK EMAIL] To: {message.to_email}, "
            f"Subject: {message.subject}, "
            f"Type: {message.email_type.value}"
        )
        MockEmailProvider.sent_emails.append(message)
        return EmailResult(
            success=True,
            message_id=f"mock-{datetime.utcnow().timestamp()}",
            provider="mock",
        )

    @classmethod
    def clear_sent_emails(cls):
        """Clear sent emails list (for test cleanup)."""
        cls.sent_emails = []


# ============================================================================
# Templates
# ============================================================================


class EmailTemplateRenderer:
    """
    Renders Jinja2 email templates.

    Autoescaping is on: ticket titles and comments are user input.
    """

    def __init__(self, template_dir: Optional[Path] = None):
        self._env = Environment(
            loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        """
        Raises:
            EmailServiceError: If the template is missing
        """
        try:
            template = self._env.get_template(template_name)
        except TemplateNotFound:
            logger.error(f"Email template not found: {template_name}")
            raise EmailServiceError(
                message=f"Email template not found: {template_name}",
                template=template_name,
            )
        return template.render(
            platform_name=settings.PROJECT_NAME,
            frontend_url=settings.FRONTEND_URL,
            year=datetime.utcnow().year,
            **context,
        )


# ============================================================================
# Email Service
# ============================================================================


class EmailService:
    """
    High-level email service for ticket notifications.

    HOW: Renders a template per email type and hands the message to the
    configured provider.
    """

    def __init__(
        self,
        provider: Optional[EmailProvider] = None,
        renderer: Optional[EmailTemplateRenderer] = None,
    ):
        if provider:
            self._provider = provider
        elif settings.RESEND_API_KEY:
            self._provider = ResendProvider()
        else:
            logger.warning("No email provider configured, using mock provider")
            self._provider = MockEmailProvider()

        self._renderer = renderer or EmailTemplateRenderer()

    @property
    def provider(self) -> EmailProvider:
        return self._provider

    async def send_email(self, message: EmailMessage) -> EmailResult:
        """Send an email message through the configured provider."""
        logger.info(f"Sending {message.email_type.value} email to {message.to_email}")

        result = await self._provider.send(message)

        if result.success:
            logger.info(f"Email sent: {result.message_id} via {result.provider}")
        else:
            logger.error(
                f"Email send failed for {message.email_type.value} "
                f"to {message.to_email}: {result.error}"
            )
        return result

    async def send_ticket_created_email(
        self,
        to_email: str,
        ticket_number: str,
        title: str,
        company_name: str,
        created_by: str,
        priority: str,
    ) -> EmailResult:
        html = self._renderer.render(
            "ticket_created.html",
            {
                "ticket_number": ticket_number,
                "title": title,
                "company_name": company_name,
                "created_by": created_by,
                "priority": priority,
            },
        )
        return await self.send_email(
            EmailMessage(
                to_email=to_email,
                subject=f"New ticket - {ticket_number}",
                html_content=html,
                text_content=f"{created_by} opened {ticket_number}: {title}",
                email_type=EmailType.TICKET_CREATED,
                metadata={"ticket_number": ticket_number},
            )
        )

    async def send_ticket_status_email(
        self,
        to_email: str,
        ticket_number: str,
        title: str,
        old_status: str,
        new_status: str,
    ) -> EmailResult:
        html = self._renderer.render(
            "ticket_status.html",
            {
                "ticket_number": ticket_number,
                "title": title,
                "old_status": old_status,
                "new_status": new_status,
            },
        )
        return await self.send_email(
            EmailMessage(
                to_email=to_email,
                subject=f"Ticket status changed - {ticket_number}",
                html_content=html,
                text_content=f"{ticket_number} moved from {old_status} to {new_status}",
                email_type=EmailType.TICKET_STATUS,
                metadata={"ticket_number": ticket_number},
            )
        )

    async def send_ticket_comment_email(
        self,
        to_email: str,
        ticket_number: str,
        title: str,
        comment_author: str,
        comment_text: str,
        is_internal: bool,
    ) -> EmailResult:
        html = self._renderer.render(
            "ticket_comment.html",
            {
                "ticket_number": ticket_number,
                "title": title,
                "comment_author": comment_author,
                "comment_text": comment_text,
                "is_internal": is_internal,
            },
        )
        label = "Internal comment added" if is_internal else "New comment added"
        return await self.send_email(
            EmailMessage(
                to_email=to_email,
                subject=f"{label} - {ticket_number}",
                html_content=html,
                text_content=f"{comment_author} commented on {ticket_number}:\n\n{comment_text}",
                email_type=EmailType.TICKET_COMMENT,
                metadata={"ticket_number": ticket_number, "internal": is_internal},
            )
        )

    async def send_test_email(self, to_email: str) -> EmailResult:
        html = self._renderer.render("connection_test.html", {})
        return await self.send_email(
            EmailMessage(
                to_email=to_email,
                subject=f"{settings.PROJECT_NAME} email test",
                html_content=html,
                text_content="Email settings are working.",
                email_type=EmailType.CONNECTION_TEST,
            )
        )


_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get or create the global email service instance."""
    global _email_service

    if _email_service is None:
        _email_service = EmailService()

    return _email_service
