# backend/nottu/exceptions.py
"""
Errors raised by the passkey ceremonies.

Each carries the HTTP status and the client-safe message the API returns.
Routers translate them into HTTPException; nothing else needs to know about
status codes.
"""

from fastapi import status


class CeremonyError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    message: str = "Request could not be processed."

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidRequestError(CeremonyError):
    """A required field is missing or empty."""


class EmailAlreadyRegisteredError(CeremonyError):
    message = "Email already registered."


class ChallengeExpiredError(CeremonyError):
    """No usable challenge: never issued, expired, or already consumed."""

    message = "Invalid or expired challenge."


class VerificationFailedError(CeremonyError):
    message = "Verification failed."


class UnknownUserError(CeremonyError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Invalid email."


class UnknownCredentialError(CeremonyError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Credential not found."
