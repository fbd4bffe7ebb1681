# backend/nottu/core/custom_jwt_strategy.py
"""
Session token strategy issued after a successful passkey ceremony.
"""

import uuid
from datetime import UTC, datetime

import jwt
from fastapi_users.authentication.strategy import JWTStrategy
from fastapi_users.jwt import decode_jwt, generate_jwt

from nottu.core.config import settings

SESSION_TOKEN_AUDIENCE = "nottu:auth"


class SessionJWTStrategy(JWTStrategy):
    """
    JWT strategy for passwordless sessions.

    Tokens carry the user id as `sub` and an `auth_time` claim recording when
    the ceremony completed. They are stateless: expiry is the only bound.
    """

    async def write_token(self, user) -> str:
        data = {
            "sub": str(user.id),
            "aud": self.token_audience,
            "auth_time": int(datetime.now(UTC).timestamp()),
        }
        return generate_jwt(data, self.encode_key, self.lifetime_seconds, algorithm=self.algorithm)

    def decode_user_id(self, token: str) -> uuid.UUID:
        """
        Return the user id a token was issued for.

        Raises `jwt.ExpiredSignatureError` for expired tokens and
        `jwt.InvalidTokenError` for anything else that does not verify.
        """
        payload = decode_jwt(token, self.decode_key, self.token_audience, algorithms=[self.algorithm])
        subject = payload.get("sub")
        if subject is None:
            raise jwt.InvalidTokenError("Token has no subject.")
        try:
            return uuid.UUID(str(subject))
        except ValueError as e:
            raise jwt.InvalidTokenError("Token subject is not a user id.") from e


def get_session_strategy() -> SessionJWTStrategy:
    return SessionJWTStrategy(
        secret=str(settings.SECRET_KEY),
        lifetime_seconds=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        algorithm=settings.ALGORITHM,
        token_audience=[SESSION_TOKEN_AUDIENCE],
    )
