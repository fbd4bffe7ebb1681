# backend/nottu/core/security.py

import logging
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from nottu import crud
from nottu.core.custom_jwt_strategy import SessionJWTStrategy, get_session_strategy
from nottu.core.request_context import get_client_ip
from nottu.core.security_logger import security_log
from nottu.db.models.user import User
from nottu.db.session import get_async_session

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False, description="Session token from a passkey ceremony")


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=message,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def current_active_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    strategy: Annotated[SessionJWTStrategy, Depends(get_session_strategy)],
    db: Annotated[AsyncSession, Depends(get_async_session)],
) -> User:
    """
    Resolve the bearer token on the request to a User.

    Every failure is a 401 with a message telling the client whether to
    re-authenticate (expired) or discard the token (invalid).
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Access denied. No token provided.")

    try:
        user_id = strategy.decode_user_id(credentials.credentials)
    except jwt.ExpiredSignatureError as e:
        raise _unauthorized("Token expired.") from e
    except jwt.InvalidTokenError as e:
        security_log.bad_token(get_client_ip(request), type(e).__name__)
        raise _unauthorized("Invalid token.") from e

    user = await crud.user.get_by_id(db, user_id=user_id)
    if user is None:
        logger.info("Valid token presented for missing user %s.", user_id)
        raise _unauthorized("Invalid token or user not found.")
    return user
