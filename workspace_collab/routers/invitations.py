"""
Workspace invitation routes.

Workspace admins create, list and cancel invitations; the invitee looks the
invitation up by token and accepts or declines it.
"""

import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Response, status

from workspace_collab.deps import (
    CurrentUser,
    DBSession,
    Invitations,
    Notifier,
    WorkspaceAdmin,
    get_current_user,
    limit_invitation_lookups,
)
from workspace_collab.models.workspace import Workspace
from workspace_collab.models.workspace_invitation import AccessLevel
from workspace_collab.schemas import (
    CreateWorkspaceInvitationRequest,
    WorkspaceCollaboratorResponse,
    WorkspaceInvitationResponse,
)

router = APIRouter(prefix="/api/v2/workspaces", tags=["invitations"])
token_router = APIRouter(prefix="/api/v2/invitations", tags=["invitations"])


@router.post(
    "/{workspace_id}/invitations",
    response_model=WorkspaceInvitationResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_workspace_invitation(
    body: CreateWorkspaceInvitationRequest,
    workspace: WorkspaceAdmin,
    user: CurrentUser,
    invitations: Invitations,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
):
    """Invite an email address to the workspace.

    The response is the only place the invitation token is ever returned.
    The invitation email goes out after the response.
    """
    invitation = await invitations.create(workspace, user, body.email, body.access_level)

    if notifier.enabled:
        background_tasks.add_task(
            notifier.send_invitation,
            to_email=invitation.email,
            token=invitation.token,
            workspace_name=workspace.name,
            access_level=AccessLevel(invitation.access_level).value,
            expires_at=invitation.expires_at,
            inviter_name=user.display_name,
        )

    return WorkspaceInvitationResponse.from_model(invitation, token=invitation.token)


@router.get(
    "/{workspace_id}/invitations",
    response_model=list[WorkspaceInvitationResponse],
    response_model_exclude_none=True,
)
async def list_workspace_invitations(
    workspace: WorkspaceAdmin,
    invitations: Invitations,
):
    """All invitations for the workspace, newest first."""
    return [
        WorkspaceInvitationResponse.from_model(invitation)
        for invitation in await invitations.list_for_workspace(workspace.id)
    ]


@router.delete("/{workspace_id}/invitations/{invitation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_workspace_invitation(
    invitation_id: uuid.UUID,
    workspace: WorkspaceAdmin,
    invitations: Invitations,
):
    await invitations.cancel(workspace.id, invitation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@token_router.get(
    "/{token}",
    response_model=WorkspaceInvitationResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(limit_invitation_lookups)],
)
async def get_workspace_invitation_by_token(
    token: str,
    invitations: Invitations,
):
    """Public lookup used by the acceptance page."""
    invitation, workspace, inviter = await invitations.get_details_by_token(token)
    return WorkspaceInvitationResponse.from_model(
        invitation,
        inviter_username=inviter.username,
        workspace_name=workspace.name,
    )


@token_router.post(
    "/{token}/accept",
    response_model=WorkspaceCollaboratorResponse,
    response_model_exclude_none=True,
)
async def accept_workspace_invitation(
    token: str,
    user: CurrentUser,
    db: DBSession,
    invitations: Invitations,
):
    collaborator = await invitations.accept(token, user)
    workspace = await db.get(Workspace, collaborator.workspace_id)
    return WorkspaceCollaboratorResponse.from_model(
        collaborator,
        username=user.username,
        email=user.email,
        avatar_url=user.avatar_url,
        workspace_name=workspace.name if workspace else None,
    )


@token_router.post(
    "/{token}/decline",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(get_current_user)],
)
async def decline_workspace_invitation(
    token: str,
    invitations: Invitations,
):
    await invitations.decline(token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
