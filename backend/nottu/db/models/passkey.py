# backend/nottu/db/models/passkey.py
"""
Model for WebAuthn/Passkey credentials.

Stores registered passkeys for passwordless authentication.
Each user has one or more passkeys once registration completes.
"""

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, LargeBinary, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from nottu.db.base_class import Base

if TYPE_CHECKING:
    from nottu.db.models.user import User


class PasskeyCredential(Base):
    """
    Stores WebAuthn credentials (passkeys) for users.

    A passkey allows passwordless authentication using biometrics,
    security keys, or platform authenticators (Touch ID, Windows Hello).
    """

    __tablename__ = "passkey_credentials"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # WebAuthn credential ID - unique identifier from authenticator, globally unique
    credential_id: Mapped[bytes] = mapped_column(
        LargeBinary, nullable=False, unique=True, index=True
    )

    # COSE-encoded public key from authenticator
    public_key: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    # Signature counter as last reported by the authenticator
    sign_count: Mapped[int] = mapped_column("counter", BigInteger, nullable=False, default=0)

    # Transport hints for authenticator (e.g., ["usb", "internal", "hybrid", "ble"])
    transports: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
        nullable=False,
    )

    user: Mapped["User"] = relationship(
        "nottu.db.models.user.User", back_populates="credentials"
    )

    def __repr__(self) -> str:
        return (
            f"<PasskeyCredential(id={self.id}, user_id={self.user_id}, "
            f"sign_count={self.sign_count})>"
        )
