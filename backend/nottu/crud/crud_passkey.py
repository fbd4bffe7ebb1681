# backend/nottu/crud/crud_passkey.py
import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from nottu.core.log_utils import sanitize_for_log
from nottu.crud.base import CRUDBase
from nottu.db.models.passkey import PasskeyCredential
from nottu.db.models.passkey_challenge import PasskeyChallenge
from nottu.schemas.passkey import PasskeyChallengeCreate, PasskeyCredentialCreate

logger = logging.getLogger(__name__)


def _identity_filter(model, *, email: str | None, user_id: UUID | None):
    if user_id is not None:
        return model.user_id == user_id
    if email is not None:
        return model.email == email
    raise ValueError("Either email or user_id is required to address a challenge.")


class CRUDPasskeyCredential(CRUDBase[PasskeyCredential, PasskeyCredentialCreate]):
    async def get_multi_by_user(self, db: AsyncSession, *, user_id: UUID) -> list[PasskeyCredential]:
        result = await db.execute(
            select(self.model)
            .filter(self.model.user_id == user_id)
            .order_by(self.model.created_at)
        )
        return list(result.scalars().all())

    async def get_for_user(
        self, db: AsyncSession, *, credential_id: bytes, user_id: UUID
    ) -> PasskeyCredential | None:
        """
        Get a credential by its raw id, only if it belongs to the given user.
        """
        result = await db.execute(
            select(self.model).filter(
                self.model.credential_id == credential_id,
                self.model.user_id == user_id,
            )
        )
        return result.scalars().first()

    async def get_by_credential_id(
        self, db: AsyncSession, *, credential_id: bytes
    ) -> PasskeyCredential | None:
        result = await db.execute(select(self.model).filter(self.model.credential_id == credential_id))
        return result.scalars().first()

    async def update_sign_count(
        self, db: AsyncSession, *, db_obj: PasskeyCredential, sign_count: int
    ) -> PasskeyCredential:
        db_obj.sign_count = sign_count
        db.add(db_obj)
        await db.flush()
        return db_obj


class CRUDPasskeyChallenge(CRUDBase[PasskeyChallenge, PasskeyChallengeCreate]):
    async def create_for_identity(
        self,
        db: AsyncSession,
        *,
        challenge: str,
        ttl_seconds: int,
        email: str | None = None,
        user_id: UUID | None = None,
        now: datetime | None = None,
    ) -> PasskeyChallenge:
        """
        Stage a new challenge row for an email and/or user id, expiring
        `ttl_seconds` after `now`. Older challenges for the identity are left
        in place; lookups always honor the newest one.
        """
        now = now or datetime.now(UTC)
        obj_in = PasskeyChallengeCreate(
            user_id=user_id,
            email=email,
            challenge=challenge,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
        )
        return await self.create(db, obj_in=obj_in)

    async def get_latest_valid(
        self,
        db: AsyncSession,
        *,
        email: str | None = None,
        user_id: UUID | None = None,
        now: datetime | None = None,
    ) -> PasskeyChallenge | None:
        """
        Return the most recently created challenge for the identity whose
        `expires_at` is strictly after `now`, or None.
        """
        now = now or datetime.now(UTC)
        stmt = (
            select(self.model)
            .filter(
                _identity_filter(self.model, email=email, user_id=user_id),
                self.model.expires_at > now,
            )
            .order_by(self.model.created_at.desc())
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalars().first()

    async def consume(self, db: AsyncSession, *, challenge_id: UUID) -> bool:
        """
        Delete a single challenge row. Returns False when another request
        already consumed it.
        """
        result = await db.execute(delete(self.model).where(self.model.id == challenge_id))
        return result.rowcount == 1

    async def delete_for_identity(
        self, db: AsyncSession, *, email: str | None = None, user_id: UUID | None = None
    ) -> int:
        result = await db.execute(
            delete(self.model).where(_identity_filter(self.model, email=email, user_id=user_id))
        )
        if result.rowcount:
            logger.debug(
                "Deleted %d leftover challenge(s) for %s.",
                result.rowcount,
                sanitize_for_log(str(user_id or email)),
            )
        return result.rowcount

    async def purge_expired(self, db: AsyncSession, *, now: datetime | None = None) -> int:
        now = now or datetime.now(UTC)
        result = await db.execute(delete(self.model).where(self.model.expires_at <= now))
        return result.rowcount or 0


passkey_credential = CRUDPasskeyCredential(PasskeyCredential)
passkey_challenge = CRUDPasskeyChallenge(PasskeyChallenge)
