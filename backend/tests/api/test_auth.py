# backend/tests/api/test_auth.py
"""
API integration tests for the passkey endpoints.

Tests the full HTTP flow for registration, login and /auth/me. Signature
verification is patched; challenges, users and credentials are real rows.
"""

import uuid
from unittest.mock import patch

import pytest
from fastapi import status
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from nottu.core.config import settings
from nottu.core.custom_jwt_strategy import get_session_strategy
from nottu.db.models.passkey import PasskeyCredential
from nottu.db.models.passkey_challenge import PasskeyChallenge
from nottu.db.models.user import User
from tests.factories.user_factory import PasskeyCredentialFactory, UserFactory
from tests.factories.webauthn_payloads import (
    authentication_credential,
    registration_credential,
    verified_authentication,
    verified_registration,
)

API_PREFIX = settings.API_PREFIX


async def _count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


async def register(client: AsyncClient, email: str, name: str, raw_id: bytes = b"credential-a"):
    options = await client.post(
        f"{API_PREFIX}/auth/register/options", json={"email": email, "name": name}
    )
    assert options.status_code == status.HTTP_200_OK, options.text

    with patch(
        "nottu.services.passkey_service.verify_registration_response",
        return_value=verified_registration(credential_id=raw_id),
    ):
        return await client.post(
            f"{API_PREFIX}/auth/register/verify",
            json={"email": email, "name": name, "credential": registration_credential(raw_id)},
        )


# --- Registration ---


@pytest.mark.asyncio
async def test_register_end_to_end(test_client: AsyncClient, db_session: AsyncSession) -> None:
    response = await register(test_client, "a@x.com", "Alice")

    assert response.status_code == status.HTTP_201_CREATED, response.text
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "User created successfully."
    assert body["data"]["token"]
    user = body["data"]["user"]
    assert user["email"] == "a@x.com"
    assert user["name"] == "Alice"
    assert user["profilePhoto"] is None
    uuid.UUID(user["id"])

    assert await _count(db_session, User) == 1
    assert await _count(db_session, PasskeyCredential) == 1
    assert await _count(db_session, PasskeyChallenge) == 0


@pytest.mark.asyncio
async def test_register_options_payload(test_client: AsyncClient) -> None:
    response = await test_client.post(
        f"{API_PREFIX}/auth/register/options", json={"email": "a@x.com", "name": "Alice"}
    )

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is True
    assert body["data"]["email"] == "a@x.com"
    assert body["data"]["name"] == "Alice"
    options = body["data"]["options"]
    assert options["challenge"]
    assert options["rp"]["id"] == "localhost"
    assert options["authenticatorSelection"]["residentKey"] == "preferred"


@pytest.mark.asyncio
async def test_register_options_missing_fields(test_client: AsyncClient) -> None:
    response = await test_client.post(f"{API_PREFIX}/auth/register/options", json={"email": "a@x.com"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"success": False, "message": "Please provide email and name."}


@pytest.mark.asyncio
async def test_register_options_duplicate_email(
    test_client: AsyncClient, db_session: AsyncSession
) -> None:
    UserFactory.create_user(session=db_session, email="a@x.com", name="Alice")
    await db_session.commit()

    response = await test_client.post(
        f"{API_PREFIX}/auth/register/options", json={"email": "a@x.com", "name": "Alice"}
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "Email already registered."


@pytest.mark.asyncio
async def test_register_verify_replay_is_rejected(test_client: AsyncClient) -> None:
    first = await register(test_client, "a@x.com", "Alice")
    assert first.status_code == status.HTTP_201_CREATED

    with patch(
        "nottu.services.passkey_service.verify_registration_response",
        return_value=verified_registration(),
    ):
        replay = await test_client.post(
            f"{API_PREFIX}/auth/register/verify",
            json={"email": "a@x.com", "name": "Alice", "credential": registration_credential()},
        )

    assert replay.status_code == status.HTTP_400_BAD_REQUEST
    assert replay.json() == {"success": False, "message": "Invalid or expired challenge."}


@pytest.mark.asyncio
async def test_register_verify_missing_credential(test_client: AsyncClient) -> None:
    response = await test_client.post(
        f"{API_PREFIX}/auth/register/verify", json={"email": "a@x.com", "name": "Alice"}
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "Please provide email, name and credential."


@pytest.mark.asyncio
async def test_register_verify_failed_attestation(test_client: AsyncClient) -> None:
    await test_client.post(
        f"{API_PREFIX}/auth/register/options", json={"email": "a@x.com", "name": "Alice"}
    )

    with patch(
        "nottu.services.passkey_service.verify_registration_response",
        side_effect=Exception("origin mismatch"),
    ):
        response = await test_client.post(
            f"{API_PREFIX}/auth/register/verify",
            json={"email": "a@x.com", "name": "Alice", "credential": registration_credential()},
        )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"success": False, "message": "Verification failed."}


@pytest.mark.asyncio
async def test_register_verify_unexpected_error_is_generic_500(test_client: AsyncClient) -> None:
    await test_client.post(
        f"{API_PREFIX}/auth/register/options", json={"email": "a@x.com", "name": "Alice"}
    )

    with (
        patch(
            "nottu.services.passkey_service.verify_registration_response",
            return_value=verified_registration(),
        ),
        patch(
            "nottu.services.passkey_service.crud.user.create",
            side_effect=RuntimeError("connection reset"),
        ),
    ):
        response = await test_client.post(
            f"{API_PREFIX}/auth/register/verify",
            json={"email": "a@x.com", "name": "Alice", "credential": registration_credential()},
        )

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {"success": False, "message": "Server error during registration."}


# --- Login ---


@pytest.mark.asyncio
async def test_login_options_unknown_email(
    test_client: AsyncClient, db_session: AsyncSession
) -> None:
    response = await test_client.post(
        f"{API_PREFIX}/auth/login/options", json={"email": "ghost@x.com"}
    )

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {"success": False, "message": "Invalid email."}
    assert await _count(db_session, PasskeyChallenge) == 0


@pytest.mark.asyncio
async def test_login_options_missing_email(test_client: AsyncClient) -> None:
    response = await test_client.post(f"{API_PREFIX}/auth/login/options", json={})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "Please provide email."


@pytest.mark.asyncio
async def test_login_end_to_end(test_client: AsyncClient, db_session: AsyncSession) -> None:
    registered = await register(test_client, "a@x.com", "Alice", raw_id=b"credential-a")
    user_id = registered.json()["data"]["user"]["id"]

    options = await test_client.post(f"{API_PREFIX}/auth/login/options", json={"email": "a@x.com"})
    assert options.status_code == status.HTTP_200_OK
    allowed = options.json()["data"]["options"]["allowCredentials"]
    assert len(allowed) == 1

    with patch(
        "nottu.services.passkey_service.verify_authentication_response",
        return_value=verified_authentication(new_sign_count=7),
    ):
        response = await test_client.post(
            f"{API_PREFIX}/auth/login/verify",
            json={"email": "a@x.com", "credential": authentication_credential(b"credential-a")},
        )

    assert response.status_code == status.HTTP_200_OK, response.text
    body = response.json()
    assert body["success"] is True
    assert body["data"]["token"]
    assert body["data"]["user"] == {
        "id": user_id,
        "email": "a@x.com",
        "name": "Alice",
        "profilePhoto": None,
    }

    stored = (await db_session.execute(select(PasskeyCredential))).scalar_one()
    await db_session.refresh(stored)
    assert stored.sign_count == 7


@pytest.mark.asyncio
async def test_login_verify_unknown_credential(
    test_client: AsyncClient, db_session: AsyncSession
) -> None:
    user = UserFactory.create_user(session=db_session, email="a@x.com")
    await db_session.flush()
    PasskeyCredentialFactory.create_credential(db_session, user, credential_id=b"credential-a")
    await db_session.commit()
    await test_client.post(f"{API_PREFIX}/auth/login/options", json={"email": "a@x.com"})

    response = await test_client.post(
        f"{API_PREFIX}/auth/login/verify",
        json={"email": "a@x.com", "credential": authentication_credential(b"unknown-id")},
    )

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {"success": False, "message": "Credential not found."}


@pytest.mark.asyncio
async def test_login_verify_without_options(
    test_client: AsyncClient, db_session: AsyncSession
) -> None:
    UserFactory.create_user(session=db_session, email="a@x.com")
    await db_session.commit()

    response = await test_client.post(
        f"{API_PREFIX}/auth/login/verify",
        json={"email": "a@x.com", "credential": authentication_credential()},
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "Invalid or expired challenge."


# --- /auth/me ---


@pytest.mark.asyncio
async def test_me_returns_profile(test_client: AsyncClient) -> None:
    registered = await register(test_client, "a@x.com", "Alice")
    token = registered.json()["data"]["token"]

    response = await test_client.get(
        f"{API_PREFIX}/auth/me", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is True
    user = body["data"]["user"]
    assert user["email"] == "a@x.com"
    assert user["name"] == "Alice"
    assert user["profilePhoto"] is None
    assert user["createdAt"]


@pytest.mark.asyncio
async def test_me_without_token(test_client: AsyncClient) -> None:
    response = await test_client.get(f"{API_PREFIX}/auth/me")

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {"success": False, "message": "Access denied. No token provided."}


@pytest.mark.asyncio
async def test_me_with_invalid_token(test_client: AsyncClient) -> None:
    response = await test_client.get(
        f"{API_PREFIX}/auth/me", headers={"Authorization": "Bearer not-a-token"}
    )

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["message"] == "Invalid token."


@pytest.mark.asyncio
async def test_me_with_expired_token(test_client: AsyncClient, db_session: AsyncSession) -> None:
    user = UserFactory.create_user(session=db_session, email="a@x.com")
    await db_session.commit()
    strategy = get_session_strategy()
    strategy.lifetime_seconds = -60
    token = await strategy.write_token(user)

    response = await test_client.get(
        f"{API_PREFIX}/auth/me", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["message"] == "Token expired."


@pytest.mark.asyncio
async def test_me_for_deleted_user(test_client: AsyncClient, db_session: AsyncSession) -> None:
    user = UserFactory.create_user(session=db_session, email="a@x.com")
    await db_session.commit()
    token = await get_session_strategy().write_token(user)

    await db_session.delete(user)
    await db_session.commit()

    response = await test_client.get(
        f"{API_PREFIX}/auth/me", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {"success": False, "message": "Invalid token or user not found."}


@pytest.mark.asyncio
async def test_me_keeps_absolute_photo_url(
    test_client: AsyncClient, db_session: AsyncSession
) -> None:
    user = UserFactory.create_user(
        session=db_session, email="a@x.com", profile_photo="https://img.example/a.png"
    )
    await db_session.commit()
    token = await get_session_strategy().write_token(user)

    response = await test_client.get(
        f"{API_PREFIX}/auth/me", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.json()["data"]["user"]["profilePhoto"] == "https://img.example/a.png"
