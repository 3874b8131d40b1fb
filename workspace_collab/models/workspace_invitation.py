"""
Workspace invitation model.

An invitation offers a specific email address a specific access level on a
workspace. ``pending`` is the only non-terminal status.
"""

import uuid
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import CheckConstraint, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from workspace_collab.db import Base
from workspace_collab.models.base import UTCDateTime, utcnow


class AccessLevel(str, Enum):
    """Workspace access level, ordered by increasing privilege."""

    READONLY = "readonly"
    USE = "use"
    ADMIN = "admin"


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"
    CANCELED = "canceled"


ACCESS_LEVEL_VALUES = tuple(level.value for level in AccessLevel)
INVITATION_STATUS_VALUES = tuple(status.value for status in InvitationStatus)


def enum_check(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


class WorkspaceInvitation(Base):
    """Email-based invitation to collaborate on a workspace."""

    __tablename__ = "workspace_invitations"
    __table_args__ = (
        CheckConstraint(enum_check("access_level", ACCESS_LEVEL_VALUES), name="ck_workspace_invitations_access_level"),
        CheckConstraint(enum_check("status", INVITATION_STATUS_VALUES), name="ck_workspace_invitations_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True
    )
    inviter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    email: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    access_level: Mapped[AccessLevel] = mapped_column(String(16), default=AccessLevel.READONLY, nullable=False)

    # Secret; only ever returned in the create response
    token: Mapped[str] = mapped_column(Text, unique=True, nullable=False, index=True)

    status: Mapped[InvitationStatus] = mapped_column(String(16), default=InvitationStatus.PENDING, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    responded_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    @classmethod
    def create(
        cls,
        workspace_id: uuid.UUID,
        inviter_id: uuid.UUID,
        email: str,
        access_level: AccessLevel,
        token: str,
        expires_in_days: int = 7,
    ) -> "WorkspaceInvitation":
        """Create a new pending invitation."""
        now = utcnow()
        return cls(
            id=uuid.uuid4(),
            workspace_id=workspace_id,
            inviter_id=inviter_id,
            email=email,
            access_level=AccessLevel(access_level),
            token=token,
            status=InvitationStatus.PENDING,
            created_at=now,
            expires_at=now + timedelta(days=expires_in_days),
        )

    @property
    def is_expired(self) -> bool:
        return self.expires_at <= utcnow()

    def __repr__(self) -> str:
        return f"<WorkspaceInvitation {self.email} -> workspace={self.workspace_id} status={self.status}>"
