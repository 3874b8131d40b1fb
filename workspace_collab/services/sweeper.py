"""
Periodic housekeeping: expire overdue invitations and drop stale manifest
states.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from workspace_collab.services.crypto import SecretBox
from workspace_collab.services.github_manifest import GitHubManifestService
from workspace_collab.services.invitations import InvitationService
from workspace_collab.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    expired_invitations: int = 0
    deleted_manifest_states: int = 0


async def run_sweep(session: AsyncSession, config: Settings) -> SweepResult:
    """Run one sweep pass."""
    result = SweepResult()
    result.expired_invitations = await InvitationService(session).expire_pending()
    result.deleted_manifest_states = await GitHubManifestService(
        session, config, SecretBox.from_settings(config)
    ).cleanup_expired_states()

    logger.info(
        "Sweep complete: %d invitations expired, %d manifest states removed",
        result.expired_invitations, result.deleted_manifest_states,
    )
    return result


async def sweep_forever(session_factory: Callable[[], AsyncSession], config: Settings) -> None:
    """Run sweeps every ``sweep_interval_seconds`` until cancelled."""
    interval = config.sweep_interval_seconds
    logger.info("Starting sweeper (every %ds)", interval)
    while True:
        try:
            async with session_factory() as session:
                await run_sweep(session, config)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Sweep failed")
        await asyncio.sleep(interval)
