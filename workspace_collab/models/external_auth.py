"""
External auth provider models.

Providers created at runtime (for example GitHub Apps registered through the
manifest flow) are stored here. Secret columns hold Fernet ciphertext.
"""

from datetime import datetime, timedelta

from sqlalchemy import JSON, BigInteger, Boolean, LargeBinary, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from workspace_collab.db import Base
from workspace_collab.models.base import TimestampMixin, UTCDateTime, utcnow


class ExternalAuthProvider(Base, TimestampMixin):
    """Database-stored OAuth / GitHub App provider configuration."""

    __tablename__ = "external_auth_providers"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    type: Mapped[str] = mapped_column(String(64), default="github", nullable=False)
    client_id: Mapped[str] = mapped_column(Text, nullable=False)
    client_secret_encrypted: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)

    # Display
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    display_icon: Mapped[str | None] = mapped_column(Text, nullable=True)

    # OAuth endpoints
    auth_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    token_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    validate_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    device_code_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    scopes: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    extra_token_keys: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    # Flags
    no_refresh: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    device_flow: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    regex: Mapped[str | None] = mapped_column(Text, nullable=True)

    # GitHub App
    app_install_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    app_installations_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    github_app_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    github_app_webhook_secret_encrypted: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    github_app_private_key_encrypted: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)

    def __repr__(self) -> str:
        return f"<ExternalAuthProvider {self.id} type={self.type}>"


class ExternalAuthManifestState(Base):
    """Short-lived correlator between a manifest initiation and its callback."""

    __tablename__ = "external_auth_manifest_states"

    state: Mapped[str] = mapped_column(String(128), primary_key=True)
    redirect_uri: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)

    @classmethod
    def create(cls, state: str, redirect_uri: str, ttl_minutes: int = 10) -> "ExternalAuthManifestState":
        now = utcnow()
        return cls(
            state=state,
            redirect_uri=redirect_uri,
            created_at=now,
            expires_at=now + timedelta(minutes=ttl_minutes),
        )

    @property
    def is_expired(self) -> bool:
        return self.expires_at <= utcnow()
