"""Seed script to populate database with sample data."""

import asyncio

from sqlalchemy import select

from workspace_collab.db import async_session_maker, init_db
from workspace_collab.models import AccessLevel, User, Workspace, WorkspaceCollaborator


async def seed_database():
    """Seed the database with sample data."""
    await init_db()

    async with async_session_maker() as session:
        # Check if already seeded
        existing = await session.execute(select(User).limit(1))
        if existing.scalar_one_or_none():
            print("Database already seeded. Skipping.")
            return

        print("Seeding database...")

        alice = User(username="alice", name="Alice Johnson", email="alice@example.com", is_deployment_admin=True)
        bob = User(username="bob", name="Bob Smith", email="bob@example.com")
        carol = User(username="carol", name="Carol Williams", email="carol@example.com")
        for user in (alice, bob, carol):
            user.generate_session_token()

        session.add_all([alice, bob, carol])
        await session.flush()
        print(f"Created users: {alice.email}, {bob.email}, {carol.email}")

        workspace = Workspace(name="acme-dev", owner_id=alice.id)
        session.add(workspace)
        await session.flush()
        print(f"Created workspace: {workspace.name}")

        session.add(
            WorkspaceCollaborator(
                workspace_id=workspace.id,
                user_id=bob.id,
                access_level=AccessLevel.USE.value,
                invited_by=alice.id,
            )
        )
        await session.commit()
        print("Added bob as a collaborator")

        print("\nDatabase seeded successfully!")
        print("\nSession tokens (use as the session_token cookie or a Bearer token):")
        for user in (alice, bob, carol):
            print(f"  {user.username:<6} {user.session_token}")
        print(f"\nWorkspace id: {workspace.id}")


if __name__ == "__main__":
    asyncio.run(seed_database())
