# backend/nottu/schemas/passkey.py
import uuid
from datetime import datetime

from pydantic import BaseModel


class PasskeyCredentialCreate(BaseModel):
    user_id: uuid.UUID
    credential_id: bytes
    public_key: bytes
    sign_count: int = 0
    transports: list[str] | None = None


class PasskeyChallengeCreate(BaseModel):
    user_id: uuid.UUID | None = None
    email: str | None = None
    challenge: str
    created_at: datetime
    expires_at: datetime
