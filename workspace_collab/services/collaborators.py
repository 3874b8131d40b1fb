"""
Collaborator management: listing, direct grants, access level changes and
removal.
"""

import logging
import uuid

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from workspace_collab.errors import ConflictError, NotFoundError
from workspace_collab.models.base import utcnow
from workspace_collab.models.user import User
from workspace_collab.models.workspace import Workspace
from workspace_collab.models.workspace_collaborator import WorkspaceCollaborator
from workspace_collab.models.workspace_invitation import AccessLevel

logger = logging.getLogger(__name__)


class CollaboratorService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_user_and_workspace(
        self, workspace_id: uuid.UUID, user_id: uuid.UUID
    ) -> WorkspaceCollaborator | None:
        result = await self.session.execute(
            select(WorkspaceCollaborator).where(
                WorkspaceCollaborator.workspace_id == workspace_id,
                WorkspaceCollaborator.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_for_workspace(
        self, workspace_id: uuid.UUID, collaborator_id: uuid.UUID
    ) -> WorkspaceCollaborator:
        result = await self.session.execute(
            select(WorkspaceCollaborator).where(
                WorkspaceCollaborator.id == collaborator_id,
                WorkspaceCollaborator.workspace_id == workspace_id,
            )
        )
        collaborator = result.scalar_one_or_none()
        if not collaborator:
            raise NotFoundError("Collaborator not found.")
        return collaborator

    async def list_for_workspace(
        self, workspace_id: uuid.UUID
    ) -> list[tuple[WorkspaceCollaborator, User]]:
        """Collaborators with their user rows. Rows without a user are skipped."""
        result = await self.session.execute(
            select(WorkspaceCollaborator, User)
            .join(User, User.id == WorkspaceCollaborator.user_id)
            .where(WorkspaceCollaborator.workspace_id == workspace_id)
            .order_by(WorkspaceCollaborator.created_at)
        )
        return [(collaborator, user) for collaborator, user in result.all()]

    async def add(
        self,
        workspace: Workspace,
        user_id: uuid.UUID,
        access_level: AccessLevel,
        invited_by: User,
    ) -> tuple[WorkspaceCollaborator, User]:
        """Grant a user access directly, without an invitation."""
        user = await self.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found.")

        collaborator = WorkspaceCollaborator(
            id=uuid.uuid4(),
            workspace_id=workspace.id,
            user_id=user.id,
            access_level=AccessLevel(access_level).value,
            invited_by=invited_by.id,
            created_at=utcnow(),
        )
        self.session.add(collaborator)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError("User is already a collaborator on this workspace.") from e

        logger.info("Added user %s to workspace %s as %s", user.id, workspace.id, collaborator.access_level)
        return collaborator, user

    async def update_access_level(
        self,
        workspace_id: uuid.UUID,
        collaborator_id: uuid.UUID,
        access_level: AccessLevel,
    ) -> tuple[WorkspaceCollaborator, User | None]:
        collaborator = await self.get_for_workspace(workspace_id, collaborator_id)
        collaborator.access_level = AccessLevel(access_level).value
        await self.session.commit()

        user = await self.session.get(User, collaborator.user_id)
        logger.info("Collaborator %s access level set to %s", collaborator.id, collaborator.access_level)
        return collaborator, user

    async def delete(self, workspace_id: uuid.UUID, collaborator_id: uuid.UUID) -> None:
        result = await self.session.execute(
            delete(WorkspaceCollaborator).where(
                WorkspaceCollaborator.id == collaborator_id,
                WorkspaceCollaborator.workspace_id == workspace_id,
            )
        )
        if result.rowcount == 0:
            await self.session.rollback()
            raise NotFoundError("Collaborator not found.")
        await self.session.commit()
        logger.info("Removed collaborator %s from workspace %s", collaborator_id, workspace_id)

    async def list_for_user(self, user_id: uuid.UUID) -> list[tuple[WorkspaceCollaborator, Workspace]]:
        """Workspaces the user collaborates on. Rows without a workspace are skipped."""
        result = await self.session.execute(
            select(WorkspaceCollaborator, Workspace)
            .join(Workspace, Workspace.id == WorkspaceCollaborator.workspace_id)
            .where(WorkspaceCollaborator.user_id == user_id)
            .order_by(WorkspaceCollaborator.created_at)
        )
        return [(collaborator, workspace) for collaborator, workspace in result.all()]
