"""
Routes scoped to the authenticated user.
"""

from fastapi import APIRouter

from workspace_collab.deps import CurrentUser, DBSession, Invitations
from workspace_collab.schemas import WorkspaceCollaboratorResponse, WorkspaceInvitationResponse
from workspace_collab.services.collaborators import CollaboratorService

router = APIRouter(prefix="/api/v2/users", tags=["users"])


@router.get(
    "/me/workspace-collaborations",
    response_model=list[WorkspaceCollaboratorResponse],
    response_model_exclude_none=True,
)
async def list_my_workspace_collaborations(user: CurrentUser, db: DBSession):
    """Workspaces the caller has been granted access to."""
    rows = await CollaboratorService(db).list_for_user(user.id)
    return [
        WorkspaceCollaboratorResponse.from_model(
            collaborator,
            username=user.username,
            email=user.email,
            avatar_url=user.avatar_url,
            workspace_name=workspace.name,
        )
        for collaborator, workspace in rows
    ]


@router.get(
    "/me/workspace-invitations",
    response_model=list[WorkspaceInvitationResponse],
    response_model_exclude_none=True,
)
async def list_my_workspace_invitations(user: CurrentUser, invitations: Invitations):
    """Pending invitations addressed to the caller's email."""
    return [
        WorkspaceInvitationResponse.from_model(
            invitation,
            inviter_username=inviter.username,
            workspace_name=workspace.name,
        )
        for invitation, workspace, inviter in await invitations.pending_for_email(user.email)
    ]
