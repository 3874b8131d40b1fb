"""
Deployment-level external auth provider routes, including the GitHub App
manifest flow.
"""

from fastapi import APIRouter, Response, status
from fastapi.responses import RedirectResponse

from workspace_collab.deps import DeploymentAdmin, Manifests, Providers
from workspace_collab.schemas import (
    CreateExternalAuthProviderRequest,
    ExternalAuthProviderConfig,
    GitHubAppManifestCallbackRequest,
    GitHubAppManifestRequest,
    GitHubAppManifestResponse,
    UpdateExternalAuthProviderRequest,
)

router = APIRouter(prefix="/api/v2/deployment/external-auth-providers", tags=["external-auth"])


# -------------------------------------------------------------------------
# GitHub App manifest flow
# -------------------------------------------------------------------------

@router.post("/github/manifest", response_model=GitHubAppManifestResponse)
async def initiate_github_app_manifest(
    body: GitHubAppManifestRequest,
    admin: DeploymentAdmin,
    manifests: Manifests,
):
    """Start creating a GitHub App from a manifest."""
    url, state = await manifests.initiate(body.redirect_uri, owner=body.owner)
    return GitHubAppManifestResponse(url=url, state=state)


@router.get("/github/callback")
async def github_app_manifest_callback_redirect(
    manifests: Manifests,
    code: str = "",
    state: str = "",
):
    """GitHub sends the browser here; relay code and state to the frontend."""
    redirect_url = await manifests.resolve_callback(code, state)
    return RedirectResponse(url=redirect_url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)


@router.post(
    "/github/callback",
    response_model=ExternalAuthProviderConfig,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def complete_github_app_manifest(
    body: GitHubAppManifestCallbackRequest,
    admin: DeploymentAdmin,
    manifests: Manifests,
):
    """Exchange the manifest code and register the new GitHub App."""
    provider = await manifests.complete(body.code, body.state)
    return ExternalAuthProviderConfig.from_model(provider)


# -------------------------------------------------------------------------
# Provider CRUD
# -------------------------------------------------------------------------

@router.get("", response_model=list[ExternalAuthProviderConfig], response_model_exclude_none=True)
async def list_external_auth_providers(admin: DeploymentAdmin, providers: Providers):
    return [ExternalAuthProviderConfig.from_model(p) for p in await providers.list_all()]


@router.post(
    "",
    response_model=ExternalAuthProviderConfig,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_external_auth_provider(
    body: CreateExternalAuthProviderRequest,
    admin: DeploymentAdmin,
    providers: Providers,
):
    provider = await providers.create(body)
    return ExternalAuthProviderConfig.from_model(provider)


@router.get("/{provider_id}", response_model=ExternalAuthProviderConfig, response_model_exclude_none=True)
async def get_external_auth_provider(provider_id: str, admin: DeploymentAdmin, providers: Providers):
    return ExternalAuthProviderConfig.from_model(await providers.get(provider_id))


@router.patch("/{provider_id}", response_model=ExternalAuthProviderConfig, response_model_exclude_none=True)
async def update_external_auth_provider(
    provider_id: str,
    body: UpdateExternalAuthProviderRequest,
    admin: DeploymentAdmin,
    providers: Providers,
):
    provider = await providers.update(provider_id, body)
    return ExternalAuthProviderConfig.from_model(provider)


@router.delete("/{provider_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_external_auth_provider(provider_id: str, admin: DeploymentAdmin, providers: Providers):
    await providers.delete(provider_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
