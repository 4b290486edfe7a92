"""
ARQ background task: expire pending invitations past their expiry.

Scheduled to run periodically (e.g., every hour). ``accept-invitation``
expires stale invitations lazily as well; this sweep keeps listings honest.
"""

from __future__ import annotations

import asyncio

import structlog

from app.core.config import get_settings
from app.core.database import get_session_context
from app.core.logging import configure_logging
from app.services.invitations import expire_stale_invitations

log = structlog.get_logger()


async def expire_invitations(ctx: dict) -> int:
    """Returns the number of invitations moved to ``expired``."""
    async with get_session_context() as session:
        count = await expire_stale_invitations(session)

    if count:
        log.info("invitation_expiry.batch_expired", count=count)
    return count


# ARQ worker settings
class WorkerSettings:
    """ARQ worker configuration."""

    functions = [expire_invitations]
    cron_jobs = [
        {
            "coroutine": expire_invitations,
            "hour": None,  # every hour
            "minute": 0,
        },
    ]


def main() -> None:
    """One-shot sweep for schedulers without an ARQ worker (cron, k8s CronJob)."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    asyncio.run(expire_invitations({}))


if __name__ == "__main__":
    main()
