# backend/nottu/db/models/passkey_challenge.py
"""
Short-lived WebAuthn challenges.

A row is written by the *options* step of a ceremony and consumed by the
matching *verify* step, which may be served by a different process. Rows are
keyed by email before registration and by user id (plus email) for login.
Only the most recent non-expired row for an identity is honored.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from nottu.db.base_class import Base


class PasskeyChallenge(Base):
    __tablename__ = "passkey_challenges"
    __table_args__ = (
        Index("ix_passkey_challenges_email_created_at", "email", "created_at"),
        Index("ix_passkey_challenges_user_id_created_at", "user_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # base64url of the random challenge bytes
    challenge: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return (
            f"<PasskeyChallenge(id={self.id}, email={self.email!r}, "
            f"user_id={self.user_id}, expires_at={self.expires_at})>"
        )
