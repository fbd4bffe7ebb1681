# backend/nottu/schemas/auth.py
"""
Request and response bodies of the /auth endpoints.

Request fields are optional at the schema level; the ceremonies report
missing values with their own messages instead of a generic validation error.
"""

from typing import Any

from pydantic import BaseModel, Field

from nottu.schemas.user import UserProfile, UserPublic


# --- Requests ---


class RegistrationOptionsRequest(BaseModel):
    email: str | None = None
    name: str | None = None


class RegistrationVerifyRequest(BaseModel):
    email: str | None = None
    name: str | None = None
    credential: dict[str, Any] | None = Field(
        None, description="Credential from navigator.credentials.create()"
    )


class AuthenticationOptionsRequest(BaseModel):
    email: str | None = None


class AuthenticationVerifyRequest(BaseModel):
    email: str | None = None
    credential: dict[str, Any] | None = Field(
        None, description="Credential from navigator.credentials.get()"
    )


# --- Responses ---


class RegistrationOptionsData(BaseModel):
    options: dict[str, Any]
    email: str
    name: str


class RegistrationOptionsResponse(BaseModel):
    success: bool = True
    data: RegistrationOptionsData


class AuthenticationOptionsData(BaseModel):
    options: dict[str, Any]


class AuthenticationOptionsResponse(BaseModel):
    success: bool = True
    data: AuthenticationOptionsData


class SessionData(BaseModel):
    token: str
    user: UserPublic


class SessionResponse(BaseModel):
    success: bool = True
    message: str
    data: SessionData


class MeData(BaseModel):
    user: UserProfile


class MeResponse(BaseModel):
    success: bool = True
    data: MeData
