# backend/nottu/services/passkey_service.py
"""
Passkey (WebAuthn) ceremonies for passwordless sign-up and sign-in.

Provides:
- RegistrationCeremony: options for a new account, then verification of the
  attestation, creating the user and its first credential in one transaction
- AuthenticationCeremony: options listing the user's credentials, then
  verification of the assertion and the signature counter update

Both steps of a ceremony may land on different processes. The challenge issued
by the first step is persisted in `passkey_challenges`, only the newest
unexpired row for an identity is honored, and it is deleted exactly once by a
successful second step.
"""

import hashlib
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from webauthn import (
    generate_authentication_options,
    generate_registration_options,
    options_to_json,
    verify_authentication_response,
    verify_registration_response,
)
from webauthn.helpers import (
    base64url_to_bytes,
    bytes_to_base64url,
    parse_authentication_credential_json,
    parse_registration_credential_json,
)
from webauthn.helpers.structs import (
    AttestationConveyancePreference,
    AuthenticatorSelectionCriteria,
    AuthenticatorTransport,
    PublicKeyCredentialDescriptor,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)

from nottu import crud
from nottu.core.config import Settings, settings
from nottu.core.custom_jwt_strategy import SessionJWTStrategy
from nottu.core.log_utils import sanitize_for_log
from nottu.crud.crud_user import normalize_email
from nottu.db.models.passkey_challenge import PasskeyChallenge
from nottu.db.models.user import User
from nottu.exceptions import (
    ChallengeExpiredError,
    EmailAlreadyRegisteredError,
    InvalidRequestError,
    UnknownCredentialError,
    UnknownUserError,
    VerificationFailedError,
)
from nottu.schemas.passkey import PasskeyCredentialCreate
from nottu.schemas.user import UserCreate
from nottu.services.profile_photo import ProfilePhotoResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RelyingPartyConfig:
    """Relying party identity the ceremonies issue and verify against."""

    rp_id: str
    rp_name: str
    origin: str
    challenge_ttl_seconds: int = 300

    @classmethod
    def from_settings(cls, app_settings: Settings = settings) -> "RelyingPartyConfig":
        return cls(
            rp_id=app_settings.webauthn_rp_id,
            rp_name=app_settings.WEBAUTHN_RP_NAME,
            origin=app_settings.webauthn_origin,
            challenge_ttl_seconds=app_settings.WEBAUTHN_CHALLENGE_TTL_SECONDS,
        )

    @property
    def timeout_ms(self) -> int:
        return self.challenge_ttl_seconds * 1000


@dataclass
class CeremonyResult:
    token: str
    user: User
    profile_photo: str | None = None


def _utc_now() -> datetime:
    return datetime.now(UTC)


def user_handle_for(email: str) -> bytes:
    """WebAuthn user handle: SHA-256 of the normalized email."""
    return hashlib.sha256(normalize_email(email).encode("utf-8")).digest()


def _required(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _transports(values: list[str] | None) -> list[AuthenticatorTransport]:
    transports = []
    for value in values or []:
        try:
            transports.append(AuthenticatorTransport(value))
        except ValueError:
            logger.debug("Ignoring unknown authenticator transport %s", sanitize_for_log(value))
    return transports


def _options_dict(options: Any) -> dict[str, Any]:
    return json.loads(options_to_json(options))


def _is_credential_id_conflict(error: IntegrityError) -> bool:
    """True when a unique violation came from the credential id index, not the email."""
    return "credential_id" in str(error.orig)


class _Ceremony:
    def __init__(
        self,
        rp_config: RelyingPartyConfig,
        token_strategy: SessionJWTStrategy,
        *,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.rp_config = rp_config
        self.token_strategy = token_strategy
        self.clock = clock

    async def _store_challenge(
        self,
        db: AsyncSession,
        challenge: bytes,
        *,
        email: str,
        user_id=None,
    ) -> PasskeyChallenge:
        row = await crud.passkey_challenge.create_for_identity(
            db,
            challenge=bytes_to_base64url(challenge),
            ttl_seconds=self.rp_config.challenge_ttl_seconds,
            email=email,
            user_id=user_id,
            now=self.clock(),
        )
        await db.commit()
        logger.debug("Stored challenge %s for %s", row.id, sanitize_for_log(email))
        return row

    async def _consume_challenge(
        self, db: AsyncSession, challenge: PasskeyChallenge, *, email=None, user_id=None
    ) -> None:
        if not await crud.passkey_challenge.consume(db, challenge_id=challenge.id):
            logger.warning("Challenge %s was consumed concurrently.", challenge.id)
            raise ChallengeExpiredError()
        await crud.passkey_challenge.delete_for_identity(db, email=email, user_id=user_id)


class RegistrationCeremony(_Ceremony):
    async def begin(self, db: AsyncSession, *, email: str | None, name: str | None) -> dict:
        """
        Issue registration options for a new account.

        Raises InvalidRequestError for missing fields and
        EmailAlreadyRegisteredError when the email is taken.
        """
        email, name = _required(email), _required(name)
        if not email or not name:
            raise InvalidRequestError("Please provide email and name.")
        email = normalize_email(email)

        if await crud.user.get_by_email(db, email=email):
            raise EmailAlreadyRegisteredError()

        options = generate_registration_options(
            rp_id=self.rp_config.rp_id,
            rp_name=self.rp_config.rp_name,
            user_id=user_handle_for(email),
            user_name=email,
            user_display_name=name,
            timeout=self.rp_config.timeout_ms,
            attestation=AttestationConveyancePreference.NONE,
            authenticator_selection=AuthenticatorSelectionCriteria(
                resident_key=ResidentKeyRequirement.PREFERRED,
                user_verification=UserVerificationRequirement.PREFERRED,
            ),
        )

        await self._store_challenge(db, options.challenge, email=email)
        logger.info("Registration options issued for %s", sanitize_for_log(email))
        return {"options": _options_dict(options), "email": email, "name": name}

    async def finish(
        self,
        db: AsyncSession,
        *,
        email: str | None,
        name: str | None,
        credential: dict | None,
    ) -> CeremonyResult:
        """
        Verify an attestation and create the user with its first credential.

        The user row, the credential row and the challenge deletion commit
        together or not at all.
        """
        email, name = _required(email), _required(name)
        if not email or not name or not credential:
            raise InvalidRequestError("Please provide email, name and credential.")
        email = normalize_email(email)

        challenge = await crud.passkey_challenge.get_latest_valid(
            db, email=email, now=self.clock()
        )
        if challenge is None:
            raise ChallengeExpiredError()

        if await crud.user.get_by_email(db, email=email):
            raise EmailAlreadyRegisteredError()

        try:
            parsed = parse_registration_credential_json(credential)
            verification = verify_registration_response(
                credential=parsed,
                expected_challenge=base64url_to_bytes(challenge.challenge),
                expected_rp_id=self.rp_config.rp_id,
                expected_origin=self.rp_config.origin,
            )
        except Exception as e:
            logger.warning(
                "WebAuthn registration verification failed for %s: %s",
                sanitize_for_log(email),
                sanitize_for_log(e),
            )
            raise VerificationFailedError() from e

        if not verification.credential_id or not verification.credential_public_key:
            raise VerificationFailedError()

        if await crud.passkey_credential.get_by_credential_id(
            db, credential_id=verification.credential_id
        ):
            logger.warning("Attestation reused an already registered credential id.")
            raise VerificationFailedError()

        transports = [t.value for t in (parsed.response.transports or [])]
        try:
            user = await crud.user.create(db, obj_in=UserCreate(email=email, name=name))
            await crud.passkey_credential.create(
                db,
                obj_in=PasskeyCredentialCreate(
                    user_id=user.id,
                    credential_id=verification.credential_id,
                    public_key=verification.credential_public_key,
                    sign_count=verification.sign_count,
                    transports=transports or None,
                ),
            )
            await self._consume_challenge(db, challenge, email=email)
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            if _is_credential_id_conflict(e):
                logger.warning("Attestation reused a credential id registered concurrently.")
                raise VerificationFailedError() from e
            logger.info("Concurrent registration for %s lost the race.", sanitize_for_log(email))
            raise EmailAlreadyRegisteredError() from e
        except Exception:
            await db.rollback()
            raise

        logger.info("User %s registered with a passkey.", user.id)
        token = await self.token_strategy.write_token(user)
        return CeremonyResult(token=token, user=user, profile_photo=None)


class AuthenticationCeremony(_Ceremony):
    def __init__(
        self,
        rp_config: RelyingPartyConfig,
        token_strategy: SessionJWTStrategy,
        photo_resolver: ProfilePhotoResolver,
        *,
        clock: Callable[[], datetime] = _utc_now,
    ):
        super().__init__(rp_config, token_strategy, clock=clock)
        self.photo_resolver = photo_resolver

    async def _get_user(self, db: AsyncSession, email: str) -> User:
        user = await crud.user.get_by_email(db, email=email)
        if user is None:
            raise UnknownUserError()
        return user

    async def begin(self, db: AsyncSession, *, email: str | None) -> dict:
        """
        Issue authentication options restricted to the user's credentials.

        An unknown email raises UnknownUserError and stores nothing.
        """
        email = _required(email)
        if not email:
            raise InvalidRequestError("Please provide email.")
        email = normalize_email(email)

        user = await self._get_user(db, email)
        credentials = await crud.passkey_credential.get_multi_by_user(db, user_id=user.id)

        options = generate_authentication_options(
            rp_id=self.rp_config.rp_id,
            timeout=self.rp_config.timeout_ms,
            allow_credentials=[
                PublicKeyCredentialDescriptor(
                    id=c.credential_id, transports=_transports(c.transports) or None
                )
                for c in credentials
            ],
            user_verification=UserVerificationRequirement.PREFERRED,
        )

        await self._store_challenge(db, options.challenge, email=email, user_id=user.id)
        logger.info(
            "Authentication options issued for user %s (%d credential(s))",
            user.id,
            len(credentials),
        )
        return {"options": _options_dict(options)}

    async def finish(
        self, db: AsyncSession, *, email: str | None, credential: dict | None
    ) -> CeremonyResult:
        """
        Verify an assertion and open a session.

        Check order: user, challenge, credential shape, credential ownership,
        signature. The stored counter is replaced by the reported one.
        """
        email = _required(email)
        if not email or not credential:
            raise InvalidRequestError("Please provide email and credential.")
        email = normalize_email(email)

        user = await self._get_user(db, email)

        challenge = await crud.passkey_challenge.get_latest_valid(
            db, user_id=user.id, now=self.clock()
        )
        if challenge is None:
            raise ChallengeExpiredError()

        try:
            parsed = parse_authentication_credential_json(credential)
        except Exception as e:
            logger.warning("Malformed assertion for user %s: %s", user.id, sanitize_for_log(e))
            raise VerificationFailedError() from e

        stored = await crud.passkey_credential.get_for_user(
            db, credential_id=parsed.raw_id, user_id=user.id
        )
        if stored is None:
            raise UnknownCredentialError()

        try:
            verification = verify_authentication_response(
                credential=parsed,
                expected_challenge=base64url_to_bytes(challenge.challenge),
                expected_rp_id=self.rp_config.rp_id,
                expected_origin=self.rp_config.origin,
                credential_public_key=stored.public_key,
                credential_current_sign_count=stored.sign_count,
            )
        except Exception as e:
            logger.warning(
                "WebAuthn authentication verification failed for credential %s: %s",
                stored.id,
                sanitize_for_log(e),
            )
            raise VerificationFailedError() from e

        if verification.new_sign_count <= stored.sign_count and stored.sign_count > 0:
            logger.warning(
                "Possible cloned authenticator: credential %s new_sign_count=%d <= current=%d",
                stored.id,
                verification.new_sign_count,
                stored.sign_count,
            )

        try:
            await crud.passkey_credential.update_sign_count(
                db, db_obj=stored, sign_count=verification.new_sign_count
            )
            await self._consume_challenge(db, challenge, user_id=user.id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("User %s authenticated via credential %s", user.id, stored.id)
        token = await self.token_strategy.write_token(user)
        return CeremonyResult(
            token=token, user=user, profile_photo=self.photo_resolver.resolve(user.profile_photo)
        )
