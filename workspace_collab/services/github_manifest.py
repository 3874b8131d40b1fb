"""
GitHub App manifest flow.

1. An admin initiates the flow; we persist a short-lived state token and
   return a github.com URL carrying the app manifest.
2. GitHub redirects the browser to our callback, which relays code and state
   to the frontend ``redirect_uri``.
3. The frontend posts code and state back; we consume the state, exchange the
   code for the app credentials and store a new provider.

See https://docs.github.com/en/apps/sharing-github-apps/registering-a-github-app-from-a-manifest
"""

import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode, urlparse

import httpx
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from workspace_collab.errors import APIError, UpstreamError, ValidationError
from workspace_collab.models.base import utcnow
from workspace_collab.models.external_auth import ExternalAuthManifestState, ExternalAuthProvider
from workspace_collab.services.crypto import SecretBox
from workspace_collab.services.external_auth import ExternalAuthProviderService
from workspace_collab.services.tokens import generate_state_token
from workspace_collab.settings import Settings

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/api/v2/deployment/external-auth-providers/github/callback"
WEBHOOK_PATH = "/api/v2/deployment/external-auth-providers/github/webhook"
FRONTEND_CALLBACK_PATH = "/external-auth/github/callback"
GITHUB_ICON = "/icon/github.svg"

INVALID_STATE = "Invalid or expired state token."


@dataclass(frozen=True)
class GitHubAppCredentials:
    """Fields of the app-manifest conversion response that we keep."""

    id: int
    slug: str
    name: str
    client_id: str
    client_secret: str
    webhook_secret: str | None
    pem: str
    html_url: str

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "GitHubAppCredentials":
        return cls(
            id=int(data["id"]),
            slug=data["slug"],
            name=data.get("name") or data["slug"],
            client_id=data["client_id"],
            client_secret=data["client_secret"],
            webhook_secret=data.get("webhook_secret"),
            pem=data["pem"],
            html_url=data["html_url"],
        )


class GitHubManifestService:
    def __init__(
        self,
        session: AsyncSession,
        config: Settings,
        secret_box: SecretBox,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.session = session
        self.config = config
        self.secret_box = secret_box
        self._transport = transport

    @property
    def access_url(self) -> str:
        return self.config.access_url.rstrip("/")

    def build_manifest(self, state: str) -> dict[str, Any]:
        host = urlparse(self.access_url).hostname or self.access_url
        return {
            "name": f"{self.config.app_name} - {host}",
            "url": self.access_url,
            "hook_attributes": {
                "url": f"{self.access_url}{WEBHOOK_PATH}",
                "active": False,
            },
            "redirect_url": f"{self.access_url}{CALLBACK_PATH}?{urlencode({'state': state})}",
            "callback_urls": [f"{self.access_url}{FRONTEND_CALLBACK_PATH}"],
            "setup_url": f"{self.access_url}{FRONTEND_CALLBACK_PATH}",
            "public": False,
            "default_permissions": {
                "contents": "read",
                "metadata": "read",
            },
            "default_events": [],
        }

    def manifest_url(self, manifest: dict[str, Any], owner: str | None = None) -> str:
        web_url = self.config.github_web_url.rstrip("/")
        if owner:
            base = f"{web_url}/organizations/{owner}/settings/apps/new"
        else:
            base = f"{web_url}/settings/apps/new"
        return f"{base}?{urlencode({'manifest': json.dumps(manifest)})}"

    async def initiate(self, redirect_uri: str, owner: str | None = None) -> tuple[str, str]:
        """Persist a new state and return ``(github_url, state)``."""
        if not redirect_uri:
            raise ValidationError("Redirect URI is required.")

        state = generate_state_token()
        self.session.add(
            ExternalAuthManifestState.create(
                state=state,
                redirect_uri=redirect_uri,
                ttl_minutes=self.config.manifest_state_ttl_minutes,
            )
        )
        await self.session.commit()

        url = self.manifest_url(self.build_manifest(state), owner)
        logger.info("Initiated GitHub App manifest flow (owner=%s)", owner or "<personal>")
        return url, state

    async def resolve_callback(self, code: str, state: str) -> str:
        """Validate a browser callback and return the frontend redirect URL.

        The state is left in place; it is consumed when the flow completes.
        """
        if not code or not state:
            raise ValidationError("Code and state are required.")

        result = await self.session.execute(
            select(ExternalAuthManifestState).where(
                ExternalAuthManifestState.state == state,
                ExternalAuthManifestState.expires_at > utcnow(),
            )
        )
        manifest_state = result.scalar_one_or_none()
        if not manifest_state:
            raise ValidationError(INVALID_STATE)

        return f"{manifest_state.redirect_uri}?{urlencode({'code': code, 'state': state})}"

    async def consume_state(self, state: str) -> bool:
        """Delete an unexpired state. Only one caller can win."""
        result = await self.session.execute(
            delete(ExternalAuthManifestState).where(
                ExternalAuthManifestState.state == state,
                ExternalAuthManifestState.expires_at > utcnow(),
            )
        )
        await self.session.commit()
        return result.rowcount == 1

    async def exchange_code(self, code: str) -> GitHubAppCredentials:
        url = f"{self.config.github_api_url.rstrip('/')}/app-manifests/{code}/conversions"
        try:
            async with httpx.AsyncClient(
                timeout=self.config.github_exchange_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(url, headers={"Accept": "application/vnd.github+json"})
        except httpx.HTTPError as e:
            logger.error("GitHub manifest code exchange failed: %s", e)
            raise UpstreamError("Failed to exchange code with GitHub.", detail=str(e)) from e

        if response.status_code != 201:
            logger.warning("GitHub rejected manifest code exchange with status %d", response.status_code)
            raise ValidationError("GitHub rejected the code exchange.", detail=response.text)

        try:
            return GitHubAppCredentials.from_json(response.json())
        except (ValueError, KeyError, TypeError) as e:
            raise APIError("Failed to decode GitHub response.", detail=str(e)) from e

    async def complete(self, code: str, state: str) -> ExternalAuthProvider:
        """Consume the state, exchange the code and store the new provider."""
        if not code or not state:
            raise ValidationError("Code and state are required.")

        if not await self.consume_state(state):
            raise ValidationError(INVALID_STATE)

        app = await self.exchange_code(code)

        now = utcnow()
        provider = ExternalAuthProvider(
            id=f"github-{app.slug}",
            type="github",
            client_id=app.client_id,
            client_secret_encrypted=self.secret_box.encrypt(app.client_secret),
            display_name=app.name,
            display_icon=GITHUB_ICON,
            scopes=[],
            extra_token_keys=[],
            # GitHub App user tokens do not need refreshing
            no_refresh=True,
            device_flow=False,
            app_install_url=f"{app.html_url}/installations/new",
            app_installations_url=f"{self.config.github_api_url.rstrip('/')}/user/installations",
            github_app_id=app.id,
            github_app_webhook_secret_encrypted=self.secret_box.encrypt(app.webhook_secret),
            github_app_private_key_encrypted=self.secret_box.encrypt(app.pem),
            created_at=now,
            updated_at=now,
        )
        provider = await ExternalAuthProviderService(self.session, self.secret_box).save_new(provider)
        logger.info("Registered GitHub App %s (app id %d); restart to activate", provider.id, app.id)
        return provider

    async def cleanup_expired_states(self) -> int:
        result = await self.session.execute(
            delete(ExternalAuthManifestState).where(ExternalAuthManifestState.expires_at < utcnow())
        )
        await self.session.commit()
        return result.rowcount
