# backend/nottu/schemas/user.py
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UserCreate(BaseModel):
    email: str
    name: str
    profile_photo: str | None = None


class UserPublic(BaseModel):
    """User as returned by the ceremonies. `profilePhoto` is a resolved URL."""

    model_config = ConfigDict(populate_by_name=True)

    id: uuid.UUID
    email: str
    name: str
    profile_photo: str | None = Field(default=None, alias="profilePhoto")


class UserProfile(UserPublic):
    created_at: datetime = Field(alias="createdAt")
