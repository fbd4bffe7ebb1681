# backend/tests/factories/webauthn_payloads.py
"""
Browser-shaped WebAuthn credentials and stand-ins for py_webauthn's verified
results. The signature checks themselves are patched out in tests.
"""

from types import SimpleNamespace

from webauthn.helpers import bytes_to_base64url


def registration_credential(raw_id: bytes = b"credential-a", transports=("internal",)) -> dict:
    return {
        "id": bytes_to_base64url(raw_id),
        "rawId": bytes_to_base64url(raw_id),
        "response": {
            "clientDataJSON": bytes_to_base64url(b'{"type":"webauthn.create"}'),
            "attestationObject": bytes_to_base64url(b"\xa3cfmtdnone"),
            "transports": list(transports),
        },
        "type": "public-key",
    }


def authentication_credential(raw_id: bytes = b"credential-a") -> dict:
    return {
        "id": bytes_to_base64url(raw_id),
        "rawId": bytes_to_base64url(raw_id),
        "response": {
            "clientDataJSON": bytes_to_base64url(b'{"type":"webauthn.get"}'),
            "authenticatorData": bytes_to_base64url(b"\x00" * 37),
            "signature": bytes_to_base64url(b"signature"),
        },
        "type": "public-key",
    }


def verified_registration(
    credential_id: bytes = b"credential-a",
    public_key: bytes = b"cose-public-key",
    sign_count: int = 0,
) -> SimpleNamespace:
    return SimpleNamespace(
        credential_id=credential_id,
        credential_public_key=public_key,
        sign_count=sign_count,
    )


def verified_authentication(
    credential_id: bytes = b"credential-a", new_sign_count: int = 1
) -> SimpleNamespace:
    return SimpleNamespace(credential_id=credential_id, new_sign_count=new_sign_count)
