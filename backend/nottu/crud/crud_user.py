# backend/nottu/crud/crud_user.py
import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nottu.core.log_utils import sanitize_for_log
from nottu.crud.base import CRUDBase
from nottu.db.models.user import User
from nottu.schemas.user import UserCreate

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CRUDUser(CRUDBase[User, UserCreate]):
    async def get_by_email(self, db: AsyncSession, *, email: str) -> User | None:
        """
        Get a user by email. The lookup is case-insensitive on the stored,
        normalized address.
        """
        normalized = normalize_email(email)
        logger.debug("Attempting to retrieve user by email: %s", sanitize_for_log(normalized))
        result = await db.execute(select(self.model).filter(self.model.email == normalized))
        user = result.scalars().first()
        if user:
            logger.debug("User found by email: %s (ID: %s)", sanitize_for_log(normalized), user.id)
        else:
            logger.debug("No user found with email: %s", sanitize_for_log(normalized))
        return user

    async def get_by_id(self, db: AsyncSession, *, user_id: UUID) -> User | None:
        logger.debug("Attempting to retrieve user by ID: %s", user_id)
        return await super().get(db, id=user_id)

    async def create(self, db: AsyncSession, *, obj_in: UserCreate) -> User:
        """
        Create a new passwordless user. Email is stored normalized and the
        display name trimmed. The row is flushed, not committed.
        """
        user_data = obj_in.model_dump()
        user_data["email"] = normalize_email(obj_in.email)
        user_data["name"] = obj_in.name.strip()

        db_obj = self.model(**user_data)
        db.add(db_obj)
        await db.flush()
        logger.info(
            "User %s (ID: %s) staged for creation.", sanitize_for_log(db_obj.email), db_obj.id
        )
        return db_obj


user = CRUDUser(User)
