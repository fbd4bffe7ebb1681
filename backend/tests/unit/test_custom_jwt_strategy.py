# backend/tests/unit/test_custom_jwt_strategy.py
import uuid
from types import SimpleNamespace

import jwt
import pytest
from fastapi_users.jwt import decode_jwt, generate_jwt

from nottu.core.custom_jwt_strategy import SESSION_TOKEN_AUDIENCE, SessionJWTStrategy

SECRET = "unit-test-secret-key-that-is-long-enough"


def _strategy(lifetime_seconds: int | None = 3600) -> SessionJWTStrategy:
    return SessionJWTStrategy(
        secret=SECRET,
        lifetime_seconds=lifetime_seconds,
        token_audience=[SESSION_TOKEN_AUDIENCE],
    )


@pytest.mark.asyncio
async def test_write_token_contains_subject_audience_and_auth_time():
    user = SimpleNamespace(id=uuid.uuid4())
    token = await _strategy().write_token(user)

    payload = decode_jwt(token, SECRET, [SESSION_TOKEN_AUDIENCE])

    assert payload["sub"] == str(user.id)
    assert payload["aud"] == [SESSION_TOKEN_AUDIENCE]
    assert isinstance(payload["auth_time"], int)
    assert payload["exp"] > payload["auth_time"]


@pytest.mark.asyncio
async def test_decode_user_id_round_trip():
    user = SimpleNamespace(id=uuid.uuid4())
    strategy = _strategy()

    assert strategy.decode_user_id(await strategy.write_token(user)) == user.id


@pytest.mark.asyncio
async def test_decode_user_id_rejects_expired_token():
    user = SimpleNamespace(id=uuid.uuid4())
    strategy = _strategy(lifetime_seconds=-10)

    with pytest.raises(jwt.ExpiredSignatureError):
        strategy.decode_user_id(await strategy.write_token(user))


def test_decode_user_id_rejects_other_audience():
    token = generate_jwt({"sub": str(uuid.uuid4()), "aud": ["nottu:other"]}, SECRET, 60)

    with pytest.raises(jwt.InvalidTokenError):
        _strategy().decode_user_id(token)


def test_decode_user_id_rejects_wrong_signature():
    token = generate_jwt(
        {"sub": str(uuid.uuid4()), "aud": [SESSION_TOKEN_AUDIENCE]}, "another-secret-key-value", 60
    )

    with pytest.raises(jwt.InvalidTokenError):
        _strategy().decode_user_id(token)


def test_decode_user_id_rejects_non_uuid_subject():
    token = generate_jwt({"sub": "not-a-uuid", "aud": [SESSION_TOKEN_AUDIENCE]}, SECRET, 60)

    with pytest.raises(jwt.InvalidTokenError):
        _strategy().decode_user_id(token)


def test_decode_user_id_rejects_garbage():
    with pytest.raises(jwt.InvalidTokenError):
        _strategy().decode_user_id("definitely.not.a-jwt")
