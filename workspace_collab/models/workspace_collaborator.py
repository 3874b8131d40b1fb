"""
Workspace collaborator model.
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from workspace_collab.db import Base
from workspace_collab.models.base import UTCDateTime, utcnow
from workspace_collab.models.workspace_invitation import ACCESS_LEVEL_VALUES, AccessLevel, enum_check


class WorkspaceCollaborator(Base):
    """A confirmed grant of workspace access to a user."""

    __tablename__ = "workspace_collaborators"
    __table_args__ = (
        UniqueConstraint("workspace_id", "user_id", name="uq_workspace_collaborator_workspace_user"),
        CheckConstraint(enum_check("access_level", ACCESS_LEVEL_VALUES), name="ck_workspace_collaborators_access_level"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    access_level: Mapped[AccessLevel] = mapped_column(String(16), default=AccessLevel.READONLY, nullable=False)
    invited_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<WorkspaceCollaborator user={self.user_id} workspace={self.workspace_id} access={self.access_level}>"
