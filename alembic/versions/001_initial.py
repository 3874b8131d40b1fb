"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 12:00:00.000000

Creates users and workspaces (owned by the surrounding account system),
workspace invitations and collaborators, and the external auth provider and
manifest state tables.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACCESS_LEVELS = "'readonly', 'use', 'admin'"
INVITATION_STATUSES = "'pending', 'accepted', 'declined', 'expired', 'canceled'"


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('username', sa.String(64), nullable=False),
        sa.Column('name', sa.String(100), nullable=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('avatar_url', sa.Text(), nullable=True),
        sa.Column('session_token', sa.String(64), nullable=True),
        sa.Column('is_deployment_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_session_token', 'users', ['session_token'], unique=True)

    op.create_table(
        'workspaces',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('owner_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_workspaces_owner_id', 'workspaces', ['owner_id'])

    op.create_table(
        'workspace_invitations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('workspace_id', sa.Uuid(), sa.ForeignKey('workspaces.id', ondelete='CASCADE'), nullable=False),
        sa.Column('inviter_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('access_level', sa.String(16), nullable=False, server_default='readonly'),
        sa.Column('token', sa.Text(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='pending'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('responded_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(f"access_level IN ({ACCESS_LEVELS})", name='ck_workspace_invitations_access_level'),
        sa.CheckConstraint(f"status IN ({INVITATION_STATUSES})", name='ck_workspace_invitations_status'),
    )
    op.create_index('ix_workspace_invitations_workspace_id', 'workspace_invitations', ['workspace_id'])
    op.create_index('ix_workspace_invitations_email', 'workspace_invitations', ['email'])
    op.create_index('ix_workspace_invitations_token', 'workspace_invitations', ['token'], unique=True)

    op.create_table(
        'workspace_collaborators',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('workspace_id', sa.Uuid(), sa.ForeignKey('workspaces.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('access_level', sa.String(16), nullable=False, server_default='readonly'),
        sa.Column('invited_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('workspace_id', 'user_id', name='uq_workspace_collaborator_workspace_user'),
        sa.CheckConstraint(f"access_level IN ({ACCESS_LEVELS})", name='ck_workspace_collaborators_access_level'),
    )
    op.create_index('ix_workspace_collaborators_workspace_id', 'workspace_collaborators', ['workspace_id'])
    op.create_index('ix_workspace_collaborators_user_id', 'workspace_collaborators', ['user_id'])

    op.create_table(
        'external_auth_providers',
        sa.Column('id', sa.String(255), primary_key=True),
        sa.Column('type', sa.String(64), nullable=False, server_default='github'),
        sa.Column('client_id', sa.Text(), nullable=False),
        sa.Column('client_secret_encrypted', sa.LargeBinary(), nullable=True),
        sa.Column('display_name', sa.Text(), nullable=True),
        sa.Column('display_icon', sa.Text(), nullable=True),
        sa.Column('auth_url', sa.Text(), nullable=True),
        sa.Column('token_url', sa.Text(), nullable=True),
        sa.Column('validate_url', sa.Text(), nullable=True),
        sa.Column('device_code_url', sa.Text(), nullable=True),
        sa.Column('scopes', sa.JSON(), nullable=False),
        sa.Column('extra_token_keys', sa.JSON(), nullable=False),
        sa.Column('no_refresh', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('device_flow', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('regex', sa.Text(), nullable=True),
        sa.Column('app_install_url', sa.Text(), nullable=True),
        sa.Column('app_installations_url', sa.Text(), nullable=True),
        sa.Column('github_app_id', sa.BigInteger(), nullable=True),
        sa.Column('github_app_webhook_secret_encrypted', sa.LargeBinary(), nullable=True),
        sa.Column('github_app_private_key_encrypted', sa.LargeBinary(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'external_auth_manifest_states',
        sa.Column('state', sa.String(128), primary_key=True),
        sa.Column('redirect_uri', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        'ix_external_auth_manifest_states_expires_at',
        'external_auth_manifest_states',
        ['expires_at'],
    )


def downgrade() -> None:
    op.drop_table('external_auth_manifest_states')
    op.drop_table('external_auth_providers')
    op.drop_table('workspace_collaborators')
    op.drop_table('workspace_invitations')
    op.drop_table('workspaces')
    op.drop_table('users')
