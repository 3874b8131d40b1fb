"""
Best-effort invitation notifications.

Runs as a FastAPI background task after the create response has been built.
Delivery failures are logged here and never reach the request.
"""

import logging
from datetime import datetime

from workspace_collab.services.email import EmailDeliveryError, EmailService, InvitationEmail

logger = logging.getLogger(__name__)

DEFAULT_INVITER_NAME = "A team member"


class InvitationNotifier:
    """Sends invitation emails, logging instead of raising on failure."""

    def __init__(self, email_service: EmailService):
        self.email_service = email_service

    @property
    def enabled(self) -> bool:
        return self.email_service.is_configured

    async def send_invitation(
        self,
        to_email: str,
        token: str,
        workspace_name: str,
        access_level: str,
        expires_at: datetime,
        inviter_name: str | None = None,
    ) -> bool:
        """Send the invitation email. Returns True if the provider accepted it."""
        if not self.enabled:
            logger.debug("Email not configured; skipping invitation email to %s", to_email)
            return False

        data = InvitationEmail(
            inviter_name=inviter_name or DEFAULT_INVITER_NAME,
            workspace_name=workspace_name,
            access_level=access_level,
            accept_url=self.email_service.config.accept_url(token),
            expires_at=expires_at,
        )
        try:
            await self.email_service.send_workspace_invitation(to_email, data)
        except EmailDeliveryError as e:
            logger.warning(
                "failed to send invitation email to %s for workspace %s: %s",
                to_email, workspace_name, e,
            )
            return False
        return True
