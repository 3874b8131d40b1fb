"""Shared fixtures.

Every test gets its own SQLite database file. Connections are not pooled so
that the TestClient's per-request event loops never share one.
"""

import asyncio
import os
import uuid
from typing import Any

# Must be set before the application modules build their engine
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from workspace_collab.db import build_session_maker, create_tables, get_db
from workspace_collab.deps import get_email_transport, get_github_transport, get_invitation_lookup_limiter
from workspace_collab.main import app
from workspace_collab.models import AccessLevel, User, Workspace, WorkspaceCollaborator
from workspace_collab.models.workspace_invitation import WorkspaceInvitation
from workspace_collab.services.rate_limiter import RateLimiter
from workspace_collab.settings import Settings, get_settings


class FakeUpstream:
    """Records requests and replies with a canned response."""

    def __init__(self, status_code: int = 200, json_body: Any = None):
        self.status_code = status_code
        self.json_body = json_body if json_body is not None else {}
        self.error: Exception | None = None
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json=self.json_body)


@pytest.fixture
def config():
    return Settings(
        database_url="sqlite+aiosqlite://",
        secret_key="test-secret-key",
        access_url="https://coder.example.com",
        resend_api_key=None,
        email_from=None,
        email_from_name="Coder",
        rate_limit_invitation_lookups_per_minute=100,
    )


@pytest.fixture
def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'collab.db'}", poolclass=NullPool)
    asyncio.run(create_tables(engine))
    yield engine
    asyncio.run(engine.dispose())


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
def github():
    return FakeUpstream(status_code=201)


@pytest.fixture
def resend():
    return FakeUpstream(status_code=200, json_body={"id": "email-1"})


@pytest.fixture
def lookup_limiter(config):
    return RateLimiter(requests_per_minute=config.rate_limit_invitation_lookups_per_minute)


@pytest.fixture
def client(session_maker, config, github, resend, lookup_limiter):
    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: config
    app.dependency_overrides[get_github_transport] = lambda: github.transport
    app.dependency_overrides[get_email_transport] = lambda: resend.transport
    app.dependency_overrides[get_invitation_lookup_limiter] = lambda: lookup_limiter

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()


@pytest.fixture
def run():
    """Run a coroutine to completion from a synchronous test."""
    return asyncio.run


@pytest.fixture
def make_user(session_maker):
    def _make(username: str, email: str | None = None, **kwargs) -> User:
        async def _create():
            async with session_maker() as session:
                user = User(username=username, email=email or f"{username}@example.com", **kwargs)
                user.generate_session_token()
                session.add(user)
                await session.commit()
                return user

        return asyncio.run(_create())

    return _make


@pytest.fixture
def make_workspace(session_maker):
    def _make(owner: User, name: str = "dev-box") -> Workspace:
        async def _create():
            async with session_maker() as session:
                workspace = Workspace(name=name, owner_id=owner.id)
                session.add(workspace)
                await session.commit()
                return workspace

        return asyncio.run(_create())

    return _make


@pytest.fixture
def add_collaborator(session_maker):
    def _add(workspace: Workspace, user: User, access_level: AccessLevel = AccessLevel.READONLY) -> WorkspaceCollaborator:
        async def _create():
            async with session_maker() as session:
                collaborator = WorkspaceCollaborator(
                    workspace_id=workspace.id,
                    user_id=user.id,
                    access_level=access_level.value,
                )
                session.add(collaborator)
                await session.commit()
                return collaborator

        return asyncio.run(_create())

    return _add


@pytest.fixture
def set_invitation_fields(session_maker):
    """Force columns on an invitation, e.g. to move ``expires_at`` into the past."""

    def _set(invitation_id, **values) -> None:
        async def _update():
            async with session_maker() as session:
                await session.execute(
                    update(WorkspaceInvitation)
                    .where(WorkspaceInvitation.id == uuid.UUID(str(invitation_id)))
                    .values(**values)
                )
                await session.commit()

        asyncio.run(_update())

    return _set


def auth(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {user.session_token}"}


@pytest.fixture
def owner(make_user):
    return make_user("owner", is_deployment_admin=False)


@pytest.fixture
def workspace(make_workspace, owner):
    return make_workspace(owner)


@pytest.fixture
def headers():
    return auth
