# backend/tests/factories/__init__.py

from .user_factory import PasskeyCredentialFactory, UserFactory

__all__ = ["PasskeyCredentialFactory", "UserFactory"]
