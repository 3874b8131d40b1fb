"""
Email service for sending transactional emails through the Resend API.

Email is optional: without an API key and sender address nothing is sent and
the rest of the service behaves the same.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from workspace_collab.settings import Settings

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

_templates = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
    trim_blocks=True,
    lstrip_blocks=True,
)


class EmailDeliveryError(Exception):
    """Raised when the email provider rejects or fails a send."""
    pass


@dataclass(frozen=True)
class EmailConfig:
    """Email delivery options.

    ``api_key`` and ``from_email`` must both be set for email to be sent;
    ``from_name`` falls back to the application name and ``access_url`` is the
    public base URL used to build accept links.
    """

    api_key: str | None
    from_email: str | None
    from_name: str
    access_url: str
    api_url: str = "https://api.resend.com"
    timeout_seconds: float = 30.0

    @classmethod
    def from_settings(cls, config: Settings) -> "EmailConfig":
        return cls(
            api_key=config.resend_api_key,
            from_email=config.email_from,
            from_name=config.email_from_name or config.app_name,
            access_url=config.access_url.rstrip("/"),
            api_url=config.resend_api_url.rstrip("/"),
            timeout_seconds=config.email_timeout_seconds,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.api_key and self.from_email)

    def accept_url(self, token: str) -> str:
        return f"{self.access_url}/invitation/{token}"


@dataclass(frozen=True)
class InvitationEmail:
    """Data rendered into the invitation email."""

    inviter_name: str
    workspace_name: str
    access_level: str
    accept_url: str
    expires_at: datetime


class EmailService:
    """Resend API client."""

    def __init__(self, config: EmailConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return self.config.enabled

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str,
    ) -> None:
        """Send an email, raising EmailDeliveryError on any failure."""
        if not self.is_configured:
            raise EmailDeliveryError("Email delivery is not configured")

        payload: dict[str, Any] = {
            "from": f"{self.config.from_name} <{self.config.from_email}>",
            "to": [to_email],
            "subject": subject,
            "html": html_content,
            "text": text_content,
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    f"{self.config.api_url}/emails",
                    headers={
                        "Authorization": f"Bearer {self.config.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"failed to send email: {e}") from e

        if response.status_code >= 400:
            try:
                error = response.json()
            except ValueError:
                raise EmailDeliveryError(f"resend API error (status {response.status_code})")
            raise EmailDeliveryError(
                f"resend API error: {error.get('name', 'unknown')} - {error.get('message', '')}"
            )

        logger.info("Email sent via Resend to %s", to_email)

    async def send_workspace_invitation(self, to_email: str, data: InvitationEmail) -> None:
        """Render and send a workspace invitation email."""
        subject = f"{data.inviter_name} invited you to collaborate on {data.workspace_name}"
        context = {
            "inviter_name": data.inviter_name,
            "workspace_name": data.workspace_name,
            "access_level": data.access_level,
            "accept_url": data.accept_url,
            "expires_on": f"{data.expires_at:%B} {data.expires_at.day}, {data.expires_at:%Y}",
        }
        html_content = _templates.get_template("workspace_invitation.html").render(**context)
        text_content = _templates.get_template("workspace_invitation.txt").render(**context)
        await self.send_email(to_email, subject, html_content, text_content)
