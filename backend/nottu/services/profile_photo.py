# backend/nottu/services/profile_photo.py
"""
Turns the stored `profile_photo` reference of a user into a URL the client
can load.

References into the managed bucket, either a bare object key or a URL under
the bucket's endpoint, are answered with an S3 presigned GET URL that
expires after PROFILE_PHOTO_URL_TTL_SECONDS. Other external URLs are
returned unchanged.
"""

import logging
from functools import lru_cache
from typing import Any
from urllib.parse import unquote, urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from nottu.core.config import Settings, settings

logger = logging.getLogger(__name__)


def build_s3_client(app_settings: Settings = settings):
    """S3 client for the configured endpoint (MinIO or AWS)."""
    endpoint_url = app_settings.OBJECT_STORAGE_ENDPOINT_URL
    return boto3.client(
        "s3",
        endpoint_url=endpoint_url,
        region_name=app_settings.OBJECT_STORAGE_REGION,
        aws_access_key_id=app_settings.OBJECT_STORAGE_ACCESS_KEY_ID,
        aws_secret_access_key=app_settings.OBJECT_STORAGE_SECRET_ACCESS_KEY,
        aws_session_token=app_settings.OBJECT_STORAGE_SESSION_TOKEN,
        config=Config(
            signature_version="s3v4",
            # MinIO serves buckets under the endpoint path.
            s3={"addressing_style": "path" if endpoint_url else "auto"},
        ),
    )


class ProfilePhotoResolver:
    def __init__(
        self,
        *,
        bucket: str | None,
        lifetime_seconds: int,
        endpoint_url: str | None = None,
        region: str = "us-east-1",
        s3_client: Any = None,
    ):
        self.bucket = bucket
        self.lifetime_seconds = lifetime_seconds
        self.endpoint_url = endpoint_url.rstrip("/") if endpoint_url else None
        self.region = region
        self._s3_client = s3_client

    @property
    def s3_client(self):
        if self._s3_client is None:
            self._s3_client = build_s3_client()
        return self._s3_client

    @property
    def managed_prefixes(self) -> tuple[str, ...]:
        if not self.bucket:
            return ()
        if self.endpoint_url:
            return (f"{self.endpoint_url}/{self.bucket}/",)
        return (
            f"https://{self.bucket}.s3.amazonaws.com/",
            f"https://{self.bucket}.s3.{self.region}.amazonaws.com/",
            f"https://s3.{self.region}.amazonaws.com/{self.bucket}/",
        )

    def object_key(self, reference: str) -> str | None:
        """
        Object key for a reference into the managed bucket, or None when the
        reference points anywhere else.
        """
        if not reference.startswith(("http://", "https://")):
            return reference.lstrip("/") or None

        parsed = urlparse(reference)
        location = f"{parsed.scheme}://{parsed.netloc.lower()}{parsed.path}"
        for prefix in self.managed_prefixes:
            if location.startswith(prefix):
                return unquote(location[len(prefix) :]) or None
        return None

    def resolve(self, reference: str | None) -> str | None:
        if not reference:
            return None

        key = self.object_key(reference)
        if key is None:
            return reference if reference.startswith(("http://", "https://")) else None
        if not self.bucket:
            logger.debug("No object storage bucket configured; dropping photo reference.")
            return None

        try:
            return self.s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=self.lifetime_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            logger.warning("Could not presign profile photo %s: %s", key, e)
            return None


@lru_cache
def get_profile_photo_resolver() -> ProfilePhotoResolver:
    return ProfilePhotoResolver(
        bucket=settings.OBJECT_STORAGE_BUCKET,
        lifetime_seconds=settings.PROFILE_PHOTO_URL_TTL_SECONDS,
        endpoint_url=settings.OBJECT_STORAGE_ENDPOINT_URL,
        region=settings.OBJECT_STORAGE_REGION,
    )
