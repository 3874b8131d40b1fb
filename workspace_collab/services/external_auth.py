"""
Registry of database-stored external auth providers.

Secrets are encrypted with :class:`SecretBox` before they are written and are
never returned by this service's callers. Providers added here take effect
for the OAuth machinery after a restart.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from workspace_collab.errors import ConflictError, NotFoundError, ValidationError
from workspace_collab.models.base import utcnow
from workspace_collab.models.external_auth import ExternalAuthProvider
from workspace_collab.schemas import CreateExternalAuthProviderRequest, UpdateExternalAuthProviderRequest
from workspace_collab.services.crypto import SecretBox

logger = logging.getLogger(__name__)


class ExternalAuthProviderService:
    def __init__(self, session: AsyncSession, secret_box: SecretBox):
        self.session = session
        self.secret_box = secret_box

    async def list_all(self) -> list[ExternalAuthProvider]:
        result = await self.session.execute(
            select(ExternalAuthProvider).order_by(ExternalAuthProvider.created_at)
        )
        return list(result.scalars().all())

    async def get(self, provider_id: str) -> ExternalAuthProvider:
        provider = await self.session.get(ExternalAuthProvider, provider_id)
        if not provider:
            raise NotFoundError("External auth provider not found.")
        return provider

    async def create(self, data: CreateExternalAuthProviderRequest) -> ExternalAuthProvider:
        if not data.id:
            raise ValidationError("Provider ID is required.")
        if not data.client_id:
            raise ValidationError("Client ID is required.")

        now = utcnow()
        provider = ExternalAuthProvider(
            id=data.id,
            type=data.type or "github",
            client_id=data.client_id,
            client_secret_encrypted=self.secret_box.encrypt(data.client_secret),
            display_name=data.display_name,
            display_icon=data.display_icon,
            auth_url=data.auth_url,
            token_url=data.token_url,
            validate_url=data.validate_url,
            scopes=list(data.scopes),
            extra_token_keys=[],
            no_refresh=data.no_refresh,
            device_flow=data.device_flow,
            regex=data.regex,
            app_install_url=data.app_install_url,
            app_installations_url=data.app_installations_url,
            github_app_id=data.github_app_id,
            github_app_webhook_secret_encrypted=self.secret_box.encrypt(data.github_app_webhook_secret),
            github_app_private_key_encrypted=self.secret_box.encrypt(data.github_app_private_key),
            created_at=now,
            updated_at=now,
        )
        return await self.save_new(provider)

    async def save_new(self, provider: ExternalAuthProvider) -> ExternalAuthProvider:
        """Insert a fully built provider row, mapping a duplicate id to 409."""
        self.session.add(provider)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(
                f"External auth provider {provider.id!r} already exists.",
                detail=str(e.orig),
            ) from e

        logger.info("Created external auth provider %s (%s)", provider.id, provider.type)
        return provider

    async def update(self, provider_id: str, data: UpdateExternalAuthProviderRequest) -> ExternalAuthProvider:
        provider = await self.get(provider_id)

        for field_name, value in data.model_dump(exclude_unset=True).items():
            if field_name == "scopes":
                value = list(value or [])
            elif field_name in ("no_refresh", "device_flow") and value is None:
                continue
            setattr(provider, field_name, value)
        provider.updated_at = utcnow()

        await self.session.commit()
        logger.info("Updated external auth provider %s", provider.id)
        return provider

    async def delete(self, provider_id: str) -> None:
        provider = await self.get(provider_id)
        await self.session.delete(provider)
        await self.session.commit()
        logger.info("Deleted external auth provider %s", provider_id)
