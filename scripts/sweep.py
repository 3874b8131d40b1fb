"""Expire overdue invitations and drop stale manifest states once.

Meant to be run from cron when the in-process sweeper is disabled.
"""

import asyncio
import logging

from workspace_collab.db import close_db, get_db_context
from workspace_collab.services.sweeper import run_sweep
from workspace_collab.settings import settings


async def main():
    try:
        async with get_db_context() as session:
            result = await run_sweep(session, settings)
    finally:
        await close_db()
    print(
        f"Expired {result.expired_invitations} invitations, "
        f"removed {result.deleted_manifest_states} manifest states"
    )


if __name__ == "__main__":
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
    asyncio.run(main())
