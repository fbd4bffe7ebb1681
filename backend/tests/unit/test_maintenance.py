# backend/tests/unit/test_maintenance.py
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import NullPool

from nottu import crud
from nottu.db import session as db_session_module
from nottu.db.models.passkey_challenge import PasskeyChallenge
from nottu.tasks import maintenance
from nottu.tasks.maintenance import purge_expired_challenges

NOW = datetime(2026, 5, 1, 8, 0, 0, tzinfo=UTC)


async def _challenge(db: AsyncSession, email: str, created_at: datetime, ttl: int = 300):
    return await crud.passkey_challenge.create_for_identity(
        db, challenge=f"challenge-{email}", ttl_seconds=ttl, email=email, now=created_at
    )


@pytest.mark.asyncio
async def test_purge_removes_only_expired_rows(db_session: AsyncSession):
    await _challenge(db_session, "old@x.com", NOW - timedelta(minutes=10))
    await _challenge(db_session, "edge@x.com", NOW - timedelta(seconds=300))
    await _challenge(db_session, "fresh@x.com", NOW - timedelta(seconds=60))
    await db_session.commit()

    removed = await purge_expired_challenges(db_session, now=NOW)

    assert removed == 2
    remaining = (await db_session.execute(select(PasskeyChallenge.email))).scalars().all()
    assert remaining == ["fresh@x.com"]


@pytest.mark.asyncio
async def test_purge_with_nothing_expired(db_session: AsyncSession):
    await _challenge(db_session, "fresh@x.com", NOW)
    await db_session.commit()

    assert await purge_expired_challenges(db_session, now=NOW) == 0


def test_celery_task_runs_purge_with_worker_session():
    with patch.object(
        maintenance, "_purge_expired_challenges_with_worker_session", new=AsyncMock(return_value=3)
    ):
        result = maintenance.purge_expired_challenges_task.run()

    assert result == {"status": "ok", "purged": 3}


def test_purge_is_scheduled_by_beat():
    schedule = maintenance.celery_app.conf.beat_schedule
    entry = schedule["purge-expired-passkey-challenges"]
    assert entry["task"] == "nottu.tasks.maintenance.purge_expired_challenges"
    assert entry["schedule"] == 900


def test_worker_engine_does_not_pool_connections(monkeypatch):
    monkeypatch.setattr(db_session_module, "worker_async_engine", None)
    monkeypatch.setattr(db_session_module, "WorkerSessionLocal", None)

    with patch.object(db_session_module, "create_async_engine") as mock_create_engine:
        db_session_module.initialize_worker_db_resources()

    kwargs = mock_create_engine.call_args.kwargs
    assert kwargs["poolclass"] is NullPool
    assert "pool_size" not in kwargs
    assert db_session_module.WorkerSessionLocal is not None
