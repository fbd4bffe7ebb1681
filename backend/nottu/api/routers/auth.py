# backend/nottu/api/routers/auth.py
"""
Passkey (WebAuthn) sign-up and sign-in endpoints.

Provides endpoints for:
- Registering a new account with a passkey (options, verify)
- Signing in with a registered passkey (options, verify)
- Reading the authenticated user's profile
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from nottu.core.custom_jwt_strategy import SessionJWTStrategy, get_session_strategy
from nottu.core.log_utils import sanitize_for_log as _sanitize_for_log
from nottu.core.request_context import get_client_ip
from nottu.core.security import current_active_user
from nottu.core.security_logger import security_log
from nottu.db.models.user import User
from nottu.db.session import get_async_session
from nottu.exceptions import CeremonyError
from nottu.schemas.auth import (
    AuthenticationOptionsRequest,
    AuthenticationOptionsResponse,
    AuthenticationVerifyRequest,
    MeResponse,
    RegistrationOptionsRequest,
    RegistrationOptionsResponse,
    RegistrationVerifyRequest,
    SessionResponse,
)
from nottu.schemas.user import UserProfile, UserPublic
from nottu.services.passkey_service import (
    AuthenticationCeremony,
    CeremonyResult,
    RegistrationCeremony,
    RelyingPartyConfig,
)
from nottu.services.profile_photo import ProfilePhotoResolver, get_profile_photo_resolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth - Passkey Authentication"])


# --- Dependencies ---


def get_relying_party_config() -> RelyingPartyConfig:
    return RelyingPartyConfig.from_settings()


def get_registration_ceremony(
    rp_config: Annotated[RelyingPartyConfig, Depends(get_relying_party_config)],
    strategy: Annotated[SessionJWTStrategy, Depends(get_session_strategy)],
) -> RegistrationCeremony:
    return RegistrationCeremony(rp_config, strategy)


def get_authentication_ceremony(
    rp_config: Annotated[RelyingPartyConfig, Depends(get_relying_party_config)],
    strategy: Annotated[SessionJWTStrategy, Depends(get_session_strategy)],
    photo_resolver: Annotated[ProfilePhotoResolver, Depends(get_profile_photo_resolver)],
) -> AuthenticationCeremony:
    return AuthenticationCeremony(rp_config, strategy, photo_resolver)


def _session_payload(result: CeremonyResult, message: str) -> dict:
    user = UserPublic(
        id=result.user.id,
        email=result.user.email,
        name=result.user.name,
        profile_photo=result.profile_photo,
    )
    return {"success": True, "message": message, "data": {"token": result.token, "user": user}}


# --- Registration Endpoints ---


@router.post(
    "/register/options",
    response_model=RegistrationOptionsResponse,
    summary="Get passkey registration options for a new account",
)
async def registration_options(
    body: RegistrationOptionsRequest,
    db: Annotated[AsyncSession, Depends(get_async_session)],
    ceremony: Annotated[RegistrationCeremony, Depends(get_registration_ceremony)],
) -> dict:
    """
    Returns options to be passed to navigator.credentials.create() in the browser.
    """
    try:
        data = await ceremony.begin(db, email=body.email, name=body.name)
    except CeremonyError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        logger.exception("Registration options failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error during registration.",
        ) from e
    return {"success": True, "data": data}


@router.post(
    "/register/verify",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Verify the attestation and create the account",
)
async def registration_verify(
    request: Request,
    body: RegistrationVerifyRequest,
    db: Annotated[AsyncSession, Depends(get_async_session)],
    ceremony: Annotated[RegistrationCeremony, Depends(get_registration_ceremony)],
) -> dict:
    """
    Call this after navigator.credentials.create() returns successfully.
    """
    client_ip = get_client_ip(request)
    try:
        result = await ceremony.finish(
            db, email=body.email, name=body.name, credential=body.credential
        )
    except CeremonyError as e:
        security_log.passkey_failed(client_ip, body.email, type(e).__name__)
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        logger.exception("Passkey registration failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error during registration.",
        ) from e

    security_log.registration_success(client_ip, str(result.user.id))
    logger.info(
        "User %s registered from %s",
        _sanitize_for_log(result.user.email),
        _sanitize_for_log(client_ip),
    )
    return _session_payload(result, "User created successfully.")


# --- Authentication Endpoints ---


@router.post(
    "/login/options",
    response_model=AuthenticationOptionsResponse,
    summary="Get passkey authentication options",
)
async def authentication_options(
    request: Request,
    body: AuthenticationOptionsRequest,
    db: Annotated[AsyncSession, Depends(get_async_session)],
    ceremony: Annotated[AuthenticationCeremony, Depends(get_authentication_ceremony)],
) -> dict:
    """
    Returns options to be passed to navigator.credentials.get() in the browser,
    with allowCredentials listing the user's registered passkeys.
    """
    try:
        data = await ceremony.begin(db, email=body.email)
    except CeremonyError as e:
        if e.status_code == status.HTTP_401_UNAUTHORIZED:
            security_log.passkey_failed(get_client_ip(request), body.email, type(e).__name__)
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        logger.exception("Authentication options failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error during login.",
        ) from e
    return {"success": True, "data": data}


@router.post(
    "/login/verify",
    response_model=SessionResponse,
    summary="Verify passkey assertion and login",
)
async def authentication_verify(
    request: Request,
    body: AuthenticationVerifyRequest,
    db: Annotated[AsyncSession, Depends(get_async_session)],
    ceremony: Annotated[AuthenticationCeremony, Depends(get_authentication_ceremony)],
) -> dict:
    """
    Call this after navigator.credentials.get() returns successfully.
    Returns a bearer token on success.
    """
    client_ip = get_client_ip(request)
    try:
        result = await ceremony.finish(db, email=body.email, credential=body.credential)
    except CeremonyError as e:
        security_log.passkey_failed(client_ip, body.email, type(e).__name__)
        logger.warning(
            "Passkey authentication failed from %s: %s",
            _sanitize_for_log(client_ip),
            e.message,
        )
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        logger.exception("Passkey authentication error: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error during login.",
        ) from e

    security_log.login_success(client_ip, str(result.user.id), method="passkey")
    return _session_payload(result, "Login successful.")


# --- Profile ---


@router.get("/me", response_model=MeResponse, summary="Get the authenticated user")
async def read_me(
    current_user: Annotated[User, Depends(current_active_user)],
    photo_resolver: Annotated[ProfilePhotoResolver, Depends(get_profile_photo_resolver)],
) -> dict:
    profile = UserProfile(
        id=current_user.id,
        email=current_user.email,
        name=current_user.name,
        profile_photo=photo_resolver.resolve(current_user.profile_photo),
        created_at=current_user.created_at,
    )
    return {"success": True, "data": {"user": profile}}
