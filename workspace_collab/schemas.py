"""
Request and response models for the JSON API.

Optional fields are omitted from responses when unset (routes use
``response_model_exclude_none``), so list responses never carry a token.
"""

import uuid
from datetime import datetime
from typing import Annotated

from email_validator import EmailNotValidError, validate_email
from pydantic import AfterValidator, BaseModel, Field

from workspace_collab.models.external_auth import ExternalAuthProvider
from workspace_collab.models.workspace_collaborator import WorkspaceCollaborator
from workspace_collab.models.workspace_invitation import AccessLevel, InvitationStatus, WorkspaceInvitation


class ErrorResponse(BaseModel):
    message: str
    detail: str | None = None


# -------------------------------------------------------------------------
# Invitations and collaborators
# -------------------------------------------------------------------------

def _check_email(value: str) -> str:
    """Reject malformed addresses but keep the value exactly as given.

    Accepting an invitation compares this value with the account email
    byte for byte, so the normalized form must not be stored.
    """
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValueError(str(exc)) from exc
    return value


EmailAddress = Annotated[str, AfterValidator(_check_email)]


class CreateWorkspaceInvitationRequest(BaseModel):
    email: EmailAddress
    access_level: AccessLevel


class WorkspaceInvitationResponse(BaseModel):
    """An invitation. ``token`` is only present in the create response."""
    id: uuid.UUID
    workspace_id: uuid.UUID
    inviter_id: uuid.UUID
    email: str
    access_level: AccessLevel
    token: str | None = None
    status: InvitationStatus
    expires_at: datetime
    created_at: datetime
    responded_at: datetime | None = None

    # Populated fields
    inviter_username: str | None = None
    workspace_name: str | None = None

    @classmethod
    def from_model(
        cls,
        invitation: WorkspaceInvitation,
        token: str | None = None,
        inviter_username: str | None = None,
        workspace_name: str | None = None,
    ) -> "WorkspaceInvitationResponse":
        return cls(
            id=invitation.id,
            workspace_id=invitation.workspace_id,
            inviter_id=invitation.inviter_id,
            email=invitation.email,
            access_level=invitation.access_level,
            token=token or None,
            status=invitation.status,
            expires_at=invitation.expires_at,
            created_at=invitation.created_at,
            responded_at=invitation.responded_at,
            inviter_username=inviter_username,
            workspace_name=workspace_name,
        )


class AddWorkspaceCollaboratorRequest(BaseModel):
    user_id: uuid.UUID
    access_level: AccessLevel = AccessLevel.READONLY


class UpdateWorkspaceCollaboratorRequest(BaseModel):
    access_level: AccessLevel


class WorkspaceCollaboratorResponse(BaseModel):
    id: uuid.UUID
    workspace_id: uuid.UUID
    user_id: uuid.UUID
    access_level: AccessLevel
    invited_by: uuid.UUID | None = None
    created_at: datetime

    # Populated fields
    username: str | None = None
    email: str | None = None
    avatar_url: str | None = None
    workspace_name: str | None = None

    @classmethod
    def from_model(cls, collaborator: WorkspaceCollaborator, **populated) -> "WorkspaceCollaboratorResponse":
        return cls(
            id=collaborator.id,
            workspace_id=collaborator.workspace_id,
            user_id=collaborator.user_id,
            access_level=collaborator.access_level,
            invited_by=collaborator.invited_by,
            created_at=collaborator.created_at,
            **populated,
        )


# -------------------------------------------------------------------------
# External auth providers
# -------------------------------------------------------------------------

class ExternalAuthProviderConfig(BaseModel):
    """Non-secret view of a stored provider."""
    id: str
    type: str
    client_id: str
    display_name: str | None = None
    display_icon: str | None = None
    auth_url: str | None = None
    token_url: str | None = None
    validate_url: str | None = None
    scopes: list[str] | None = None
    no_refresh: bool
    device_flow: bool
    regex: str | None = None
    created_at: datetime
    updated_at: datetime

    # GitHub App
    app_install_url: str | None = None
    app_installations_url: str | None = None
    github_app_id: int | None = None

    @classmethod
    def from_model(cls, provider: ExternalAuthProvider) -> "ExternalAuthProviderConfig":
        return cls(
            id=provider.id,
            type=provider.type,
            client_id=provider.client_id,
            display_name=provider.display_name,
            display_icon=provider.display_icon,
            auth_url=provider.auth_url,
            token_url=provider.token_url,
            validate_url=provider.validate_url,
            scopes=provider.scopes or None,
            no_refresh=provider.no_refresh,
            device_flow=provider.device_flow,
            regex=provider.regex,
            created_at=provider.created_at,
            updated_at=provider.updated_at,
            app_install_url=provider.app_install_url,
            app_installations_url=provider.app_installations_url,
            github_app_id=provider.github_app_id,
        )


class CreateExternalAuthProviderRequest(BaseModel):
    id: str = ""
    type: str = "github"
    client_id: str = ""
    client_secret: str = ""
    display_name: str | None = None
    display_icon: str | None = None
    auth_url: str | None = None
    token_url: str | None = None
    validate_url: str | None = None
    scopes: list[str] = Field(default_factory=list)
    no_refresh: bool = False
    device_flow: bool = False
    regex: str | None = None

    # GitHub App
    app_install_url: str | None = None
    app_installations_url: str | None = None
    github_app_id: int | None = None
    github_app_webhook_secret: str | None = None
    github_app_private_key: str | None = None


class UpdateExternalAuthProviderRequest(BaseModel):
    """Partial update; only fields present in the body are applied."""
    display_name: str | None = None
    display_icon: str | None = None
    scopes: list[str] | None = None
    no_refresh: bool | None = None
    device_flow: bool | None = None
    regex: str | None = None


class GitHubAppManifestRequest(BaseModel):
    # Organization to create the app under; a personal app when empty
    owner: str | None = None
    redirect_uri: str = ""


class GitHubAppManifestResponse(BaseModel):
    url: str
    state: str


class GitHubAppManifestCallbackRequest(BaseModel):
    code: str = ""
    state: str = ""
