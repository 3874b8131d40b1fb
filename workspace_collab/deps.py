"""
FastAPI dependencies for authentication, database, settings and services.
"""

import uuid
from typing import Annotated

import httpx
from fastapi import Cookie, Depends, Header, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from workspace_collab.db import get_db
from workspace_collab.models.user import User
from workspace_collab.models.workspace import Workspace
from workspace_collab.models.workspace_collaborator import WorkspaceCollaborator
from workspace_collab.models.workspace_invitation import AccessLevel
from workspace_collab.services.crypto import SecretBox
from workspace_collab.services.email import EmailConfig, EmailService
from workspace_collab.services.external_auth import ExternalAuthProviderService
from workspace_collab.services.github_manifest import GitHubManifestService
from workspace_collab.services.invitations import InvitationService
from workspace_collab.services.notifier import InvitationNotifier
from workspace_collab.services.rate_limiter import RateLimiter, get_client_ip, invitation_lookup_limiter
from workspace_collab.settings import Settings, get_settings

# Type alias for database dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]
SettingsDep = Annotated[Settings, Depends(get_settings)]


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user_optional(
    db: DBSession,
    session_token: str | None = Cookie(default=None),
    authorization: str | None = Header(default=None),
) -> User | None:
    """Resolve the caller from the session cookie or a Bearer token."""
    token = session_token or _bearer_token(authorization)
    if not token:
        return None

    result = await db.execute(select(User).where(User.session_token == token))
    return result.scalar_one_or_none()


async def get_current_user(
    user: Annotated[User | None, Depends(get_current_user_optional)],
) -> User:
    """Get current user (raises 401 if not authenticated)."""
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user


# Type alias for authenticated user dependency
CurrentUser = Annotated[User, Depends(get_current_user)]


async def require_deployment_admin(user: CurrentUser) -> User:
    if not user.is_deployment_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Deployment admin access required",
        )
    return user


DeploymentAdmin = Annotated[User, Depends(require_deployment_admin)]


async def get_workspace_by_id(
    workspace_id: uuid.UUID,
    db: DBSession,
) -> Workspace:
    """Get workspace by ID."""
    workspace = await db.get(Workspace, workspace_id)
    if not workspace:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Workspace not found",
        )
    return workspace


async def get_collaborator_access_level(
    db: AsyncSession, workspace: Workspace, user: User
) -> str | None:
    result = await db.execute(
        select(WorkspaceCollaborator.access_level).where(
            WorkspaceCollaborator.workspace_id == workspace.id,
            WorkspaceCollaborator.user_id == user.id,
        )
    )
    return result.scalar_one_or_none()


async def require_workspace_access(
    workspace: Annotated[Workspace, Depends(get_workspace_by_id)],
    user: CurrentUser,
    db: DBSession,
) -> Workspace:
    """Require the owner, any collaborator, or a deployment admin."""
    if workspace.owner_id == user.id or user.is_deployment_admin:
        return workspace
    if await get_collaborator_access_level(db, workspace, user) is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not a collaborator on this workspace",
        )
    return workspace


async def require_workspace_admin(
    workspace: Annotated[Workspace, Depends(get_workspace_by_id)],
    user: CurrentUser,
    db: DBSession,
) -> Workspace:
    """Require the owner, an admin collaborator, or a deployment admin."""
    if workspace.owner_id == user.id or user.is_deployment_admin:
        return workspace
    if await get_collaborator_access_level(db, workspace, user) != AccessLevel.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return workspace


WorkspaceAccess = Annotated[Workspace, Depends(require_workspace_access)]
WorkspaceAdmin = Annotated[Workspace, Depends(require_workspace_admin)]


# -------------------------------------------------------------------------
# Services
# -------------------------------------------------------------------------

def get_invitation_service(db: DBSession, config: SettingsDep) -> InvitationService:
    return InvitationService(db, expiry_days=config.invitation_expiry_days)


def get_email_transport() -> httpx.AsyncBaseTransport | None:
    """Transport for the email provider. ``None`` uses the network."""
    return None


def get_github_transport() -> httpx.AsyncBaseTransport | None:
    """Transport for the GitHub API. ``None`` uses the network."""
    return None


def get_notifier(
    config: SettingsDep,
    transport: Annotated[httpx.AsyncBaseTransport | None, Depends(get_email_transport)],
) -> InvitationNotifier:
    return InvitationNotifier(EmailService(EmailConfig.from_settings(config), transport=transport))


def get_secret_box(config: SettingsDep) -> SecretBox:
    return SecretBox.from_settings(config)


def get_provider_service(
    db: DBSession,
    secret_box: Annotated[SecretBox, Depends(get_secret_box)],
) -> ExternalAuthProviderService:
    return ExternalAuthProviderService(db, secret_box)


def get_manifest_service(
    db: DBSession,
    config: SettingsDep,
    secret_box: Annotated[SecretBox, Depends(get_secret_box)],
    transport: Annotated[httpx.AsyncBaseTransport | None, Depends(get_github_transport)],
) -> GitHubManifestService:
    return GitHubManifestService(db, config, secret_box, transport=transport)


def get_invitation_lookup_limiter() -> RateLimiter:
    return invitation_lookup_limiter


async def limit_invitation_lookups(
    request: Request,
    config: SettingsDep,
    limiter: Annotated[RateLimiter, Depends(get_invitation_lookup_limiter)],
) -> None:
    """Throttle unauthenticated token lookups per client IP."""
    client_ip = get_client_ip(request, trust_forwarded_for=config.trust_forwarded_for)
    if not limiter.is_allowed(client_ip):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many invitation lookups. Please try again later.",
            headers={"Retry-After": str(int(limiter.reset_time(client_ip)) + 1)},
        )


Invitations = Annotated[InvitationService, Depends(get_invitation_service)]
Notifier = Annotated[InvitationNotifier, Depends(get_notifier)]
Providers = Annotated[ExternalAuthProviderService, Depends(get_provider_service)]
Manifests = Annotated[GitHubManifestService, Depends(get_manifest_service)]
