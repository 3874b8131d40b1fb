"""
User model for authentication and identity.

Users are owned by the surrounding account system; this service only reads
them to authenticate callers and enrich responses.
"""

import secrets
import uuid

from sqlalchemy import String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from workspace_collab.db import Base
from workspace_collab.models.base import TimestampMixin


class User(Base, TimestampMixin):
    """User account model."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Session management
    session_token: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True, index=True)

    # Deployment-wide administrator (manages external auth providers)
    is_deployment_admin: Mapped[bool] = mapped_column(default=False, nullable=False)

    def generate_session_token(self) -> str:
        """Generate a new session token."""
        self.session_token = secrets.token_hex(32)
        return self.session_token

    @property
    def display_name(self) -> str:
        return self.name or self.username

    def __repr__(self) -> str:
        return f"<User {self.username}>"
