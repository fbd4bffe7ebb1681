# backend/nottu/tasks/maintenance.py
"""
Maintenance tasks for database hygiene.
"""

import asyncio
import logging
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from nottu import crud
from nottu.db import session as db_session_module
from nottu.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


async def purge_expired_challenges(db: AsyncSession, now: datetime | None = None) -> int:
    """
    Delete every passkey challenge whose expiry is at or before `now`.

    Expired rows are already ignored by the ceremonies; this only keeps the
    table small. Returns the number of rows removed.
    """
    now = now or datetime.now(UTC)
    removed = await crud.passkey_challenge.purge_expired(db, now=now)
    await db.commit()
    if removed:
        logger.info("Maintenance: purged %d expired passkey challenge(s).", removed)
    else:
        logger.debug("Maintenance: no expired passkey challenges to purge.")
    return removed


async def _purge_expired_challenges_with_worker_session() -> int:
    db_session_module.initialize_worker_db_resources()
    async with db_session_module.get_worker_db_session() as db:
        return await purge_expired_challenges(db)


@celery_app.task(name="nottu.tasks.maintenance.purge_expired_challenges")
def purge_expired_challenges_task() -> dict:
    """
    Periodic task scheduled by Celery beat (CHALLENGE_PURGE_INTERVAL_SECONDS).
    """
    removed = asyncio.run(_purge_expired_challenges_with_worker_session())
    return {"status": "ok", "purged": removed}
