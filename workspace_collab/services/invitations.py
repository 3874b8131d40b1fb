"""
Workspace invitation lifecycle.

Status transitions are compare-and-swap UPDATEs guarded on
``status = 'pending'`` so that concurrent accept/decline/cancel calls cannot
both succeed.
"""

import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from workspace_collab.errors import APIError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from workspace_collab.models.base import utcnow
from workspace_collab.models.user import User
from workspace_collab.models.workspace import Workspace
from workspace_collab.models.workspace_collaborator import WorkspaceCollaborator
from workspace_collab.models.workspace_invitation import AccessLevel, InvitationStatus, WorkspaceInvitation
from workspace_collab.services.collaborators import CollaboratorService
from workspace_collab.services.tokens import generate_invitation_token

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_DAYS = 7

ALREADY_COLLABORATOR = "You are already a collaborator on this workspace."


def status_value(status: InvitationStatus | str) -> str:
    return InvitationStatus(status).value


class InvitationService:
    """Creates invitations and moves them through their status lifecycle."""

    def __init__(self, session: AsyncSession, expiry_days: int = DEFAULT_EXPIRY_DAYS):
        self.session = session
        self.expiry_days = expiry_days

    async def create(
        self,
        workspace: Workspace,
        inviter: User,
        email: str,
        access_level: AccessLevel,
    ) -> WorkspaceInvitation:
        """Create a pending invitation. The returned row carries the plaintext token."""
        invitation = WorkspaceInvitation.create(
            workspace_id=workspace.id,
            inviter_id=inviter.id,
            email=email,
            access_level=access_level,
            token=generate_invitation_token(),
            expires_in_days=self.expiry_days,
        )
        self.session.add(invitation)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise APIError("Failed to create invitation.", detail=str(e.orig)) from e

        logger.info(
            "Created invitation %s for %s on workspace %s (%s)",
            invitation.id, email, workspace.id, status_value(invitation.status),
        )
        return invitation

    async def list_for_workspace(self, workspace_id: uuid.UUID) -> list[WorkspaceInvitation]:
        """All invitations of a workspace, newest first."""
        result = await self.session.execute(
            select(WorkspaceInvitation)
            .where(WorkspaceInvitation.workspace_id == workspace_id)
            .order_by(WorkspaceInvitation.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_by_token(self, token: str) -> WorkspaceInvitation:
        result = await self.session.execute(
            select(WorkspaceInvitation).where(WorkspaceInvitation.token == token)
        )
        invitation = result.scalar_one_or_none()
        if not invitation:
            raise NotFoundError("Invitation not found.")
        return invitation

    async def get_details_by_token(self, token: str) -> tuple[WorkspaceInvitation, Workspace, User]:
        """Look up an invitation with its workspace and inviter for the acceptance page."""
        invitation = await self.get_by_token(token)

        workspace = await self.session.get(Workspace, invitation.workspace_id)
        if not workspace:
            raise APIError("Failed to get workspace details.", detail="workspace not found")

        inviter = await self.session.get(User, invitation.inviter_id)
        if not inviter:
            raise APIError("Failed to get inviter details.", detail="inviter not found")

        return invitation, workspace, inviter

    async def pending_for_email(self, email: str) -> list[tuple[WorkspaceInvitation, Workspace, User]]:
        """Pending, unexpired invitations addressed to an email.

        Invitations whose workspace or inviter cannot be resolved are skipped.
        """
        result = await self.session.execute(
            select(WorkspaceInvitation, Workspace, User)
            .join(Workspace, Workspace.id == WorkspaceInvitation.workspace_id)
            .join(User, User.id == WorkspaceInvitation.inviter_id)
            .where(
                WorkspaceInvitation.email == email,
                WorkspaceInvitation.status == InvitationStatus.PENDING.value,
                WorkspaceInvitation.expires_at > utcnow(),
            )
            .order_by(WorkspaceInvitation.created_at.desc())
        )
        return [tuple(row) for row in result.all()]

    async def _transition(
        self,
        invitation_id: uuid.UUID,
        new_status: InvitationStatus,
        require_unexpired: bool = False,
    ) -> bool:
        """Move a pending invitation to ``new_status``. False if it was not pending."""
        now = utcnow()
        stmt = (
            update(WorkspaceInvitation)
            .where(
                WorkspaceInvitation.id == invitation_id,
                WorkspaceInvitation.status == InvitationStatus.PENDING.value,
            )
            .values(status=new_status.value, responded_at=now)
            .execution_options(synchronize_session=False)
        )
        if require_unexpired:
            stmt = stmt.where(WorkspaceInvitation.expires_at > now)
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def _current_status(self, invitation_id: uuid.UUID) -> str:
        result = await self.session.execute(
            select(WorkspaceInvitation.status).where(WorkspaceInvitation.id == invitation_id)
        )
        return status_value(result.scalar_one())

    async def cancel(self, workspace_id: uuid.UUID, invitation_id: uuid.UUID) -> None:
        """Cancel a pending invitation.

        Cancelling an already canceled invitation is a no-op; any other
        terminal status is a conflict.
        """
        result = await self.session.execute(
            select(WorkspaceInvitation).where(
                WorkspaceInvitation.id == invitation_id,
                WorkspaceInvitation.workspace_id == workspace_id,
            )
        )
        invitation = result.scalar_one_or_none()
        if not invitation:
            raise NotFoundError("Invitation not found.")

        if await self._transition(invitation.id, InvitationStatus.CANCELED):
            await self.session.commit()
            logger.info("Canceled invitation %s", invitation.id)
            return

        current = await self._current_status(invitation.id)
        if current == InvitationStatus.CANCELED.value:
            return
        raise ConflictError(f"Invitation is already {current}.")

    async def accept(self, token: str, user: User) -> WorkspaceCollaborator:
        """Accept an invitation as ``user`` and create the collaborator row.

        The status swap and the collaborator insert commit together; a unique
        violation on (workspace_id, user_id) rolls both back.
        """
        invitation = await self.get_by_token(token)

        if invitation.status != InvitationStatus.PENDING:
            raise ConflictError(f"Invitation is {status_value(invitation.status)}.")
        if invitation.is_expired:
            raise ValidationError("Invitation has expired.")
        if user.email != invitation.email:
            raise ForbiddenError("This invitation was sent to a different email address.")

        collaborators = CollaboratorService(self.session)
        if await collaborators.get_by_user_and_workspace(invitation.workspace_id, user.id):
            raise ConflictError(ALREADY_COLLABORATOR)

        if not await self._transition(invitation.id, InvitationStatus.ACCEPTED, require_unexpired=True):
            current = await self._current_status(invitation.id)
            await self.session.rollback()
            if current == InvitationStatus.PENDING.value:
                raise ValidationError("Invitation has expired.")
            raise ConflictError(f"Invitation is {current}.")

        collaborator = WorkspaceCollaborator(
            id=uuid.uuid4(),
            workspace_id=invitation.workspace_id,
            user_id=user.id,
            access_level=invitation.access_level,
            invited_by=invitation.inviter_id,
            created_at=utcnow(),
        )
        self.session.add(collaborator)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(ALREADY_COLLABORATOR) from e

        logger.info("User %s accepted invitation %s", user.id, invitation.id)
        return collaborator

    async def decline(self, token: str) -> None:
        invitation = await self.get_by_token(token)

        if invitation.status != InvitationStatus.PENDING:
            raise ConflictError(f"Invitation is already {status_value(invitation.status)}.")

        if not await self._transition(invitation.id, InvitationStatus.DECLINED):
            current = await self._current_status(invitation.id)
            await self.session.rollback()
            raise ConflictError(f"Invitation is already {current}.")

        await self.session.commit()
        logger.info("Declined invitation %s", invitation.id)

    async def expire_pending(self) -> int:
        """Mark every pending invitation past its expiry as expired."""
        result = await self.session.execute(
            update(WorkspaceInvitation)
            .where(
                WorkspaceInvitation.status == InvitationStatus.PENDING.value,
                WorkspaceInvitation.expires_at <= utcnow(),
            )
            .values(status=InvitationStatus.EXPIRED.value)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount
