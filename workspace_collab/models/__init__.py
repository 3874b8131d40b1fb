# Models package
from workspace_collab.db import Base
from workspace_collab.models.user import User
from workspace_collab.models.workspace import Workspace
from workspace_collab.models.workspace_invitation import (
    AccessLevel,
    InvitationStatus,
    WorkspaceInvitation,
)
from workspace_collab.models.workspace_collaborator import WorkspaceCollaborator
from workspace_collab.models.external_auth import (
    ExternalAuthManifestState,
    ExternalAuthProvider,
)

__all__ = [
    "Base",
    "User",
    "Workspace",
    "AccessLevel",
    "InvitationStatus",
    "WorkspaceInvitation",
    "WorkspaceCollaborator",
    "ExternalAuthProvider",
    "ExternalAuthManifestState",
]
