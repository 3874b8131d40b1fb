"""
Workspace collaborator routes.
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from workspace_collab.deps import CurrentUser, DBSession, WorkspaceAccess, WorkspaceAdmin
from workspace_collab.schemas import (
    AddWorkspaceCollaboratorRequest,
    UpdateWorkspaceCollaboratorRequest,
    WorkspaceCollaboratorResponse,
)
from workspace_collab.services.collaborators import CollaboratorService

router = APIRouter(prefix="/api/v2/workspaces", tags=["collaborators"])


def get_collaborator_service(db: DBSession) -> CollaboratorService:
    return CollaboratorService(db)


Collaborators = Annotated[CollaboratorService, Depends(get_collaborator_service)]


@router.get(
    "/{workspace_id}/collaborators",
    response_model=list[WorkspaceCollaboratorResponse],
    response_model_exclude_none=True,
)
async def list_workspace_collaborators(
    workspace: WorkspaceAccess,
    collaborators: Collaborators,
):
    return [
        WorkspaceCollaboratorResponse.from_model(
            collaborator,
            username=user.username,
            email=user.email,
            avatar_url=user.avatar_url,
        )
        for collaborator, user in await collaborators.list_for_workspace(workspace.id)
    ]


@router.post(
    "/{workspace_id}/collaborators",
    response_model=WorkspaceCollaboratorResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def add_workspace_collaborator(
    body: AddWorkspaceCollaboratorRequest,
    workspace: WorkspaceAdmin,
    user: CurrentUser,
    collaborators: Collaborators,
):
    """Grant access to an existing user without an invitation."""
    collaborator, member = await collaborators.add(workspace, body.user_id, body.access_level, invited_by=user)
    return WorkspaceCollaboratorResponse.from_model(
        collaborator,
        username=member.username,
        email=member.email,
        avatar_url=member.avatar_url,
    )


@router.patch(
    "/{workspace_id}/collaborators/{collaborator_id}",
    response_model=WorkspaceCollaboratorResponse,
    response_model_exclude_none=True,
)
async def update_workspace_collaborator(
    collaborator_id: uuid.UUID,
    body: UpdateWorkspaceCollaboratorRequest,
    workspace: WorkspaceAdmin,
    collaborators: Collaborators,
):
    collaborator, member = await collaborators.update_access_level(
        workspace.id, collaborator_id, body.access_level
    )
    populated = {}
    if member:
        populated = {"username": member.username, "email": member.email, "avatar_url": member.avatar_url}
    return WorkspaceCollaboratorResponse.from_model(collaborator, **populated)


@router.delete("/{workspace_id}/collaborators/{collaborator_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workspace_collaborator(
    collaborator_id: uuid.UUID,
    workspace: WorkspaceAdmin,
    collaborators: Collaborators,
):
    await collaborators.delete(workspace.id, collaborator_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
