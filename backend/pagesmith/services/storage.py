"""
Object storage for project media (S3-compatible bucket via boto3).

boto3 is synchronous — every call runs in a worker thread
(asyncio.to_thread) so the event loop never blocks on the network.

Keys:  <prefix>/<project_id>/<kind>/<sha[:12]>.<ext>
URLs:  STORAGE_PUBLIC_BASE_URL/<key>
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import mimetypes
from typing import Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from pagesmith.core.config import settings
from pagesmith.core.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"


class Storage(Protocol):
    @property
    def configured(self) -> bool: ...

    def build_key(self, *, project_id: str, kind: str, data: bytes, content_type: str | None) -> str: ...

    async def put(self, *, key: str, data: bytes, content_type: str | None) -> str: ...

    async def delete(self, key: str) -> None: ...


def _extension(content_type: str | None) -> str:
    if content_type == "image/jpeg":
        return "jpg"
    guessed = mimetypes.guess_extension(content_type or "") if content_type else None
    return (guessed or ".bin").lstrip(".")


class MediaStorage:
    """Thin wrapper around an S3-compatible bucket for uploads and deletes."""

    def __init__(self) -> None:
        self.bucket = settings.STORAGE_BUCKET
        self.prefix = (settings.STORAGE_PREFIX or "").strip("/")
        self.public_base_url = settings.STORAGE_PUBLIC_BASE_URL.rstrip("/")
        self._client = None

    @property
    def configured(self) -> bool:
        return bool(
            self.bucket
            and self.public_base_url
            and settings.STORAGE_ACCESS_KEY
            and settings.STORAGE_SECRET_KEY
        )

    @property
    def client(self):
        if not self.configured:
            raise ConfigurationError("object storage is not configured")
        if self._client is None:
            session = boto3.session.Session()
            self._client = session.client(
                "s3",
                endpoint_url=settings.STORAGE_ENDPOINT or None,
                aws_access_key_id=settings.STORAGE_ACCESS_KEY,
                aws_secret_access_key=settings.STORAGE_SECRET_KEY,
                region_name=settings.STORAGE_REGION or "us-east-1",
                config=Config(signature_version="s3v4"),
            )
        return self._client

    def build_key(self, *, project_id: str, kind: str, data: bytes, content_type: str | None) -> str:
        """Content-addressed within a project: identical uploads share a key."""
        digest = hashlib.sha256(data).hexdigest()[:12]
        parts = [p for p in [self.prefix, str(project_id), kind] if p]
        return "/".join(parts + [f"{digest}.{_extension(content_type)}"])

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    async def put(self, *, key: str, data: bytes, content_type: str | None) -> str:
        """Upload bytes; return the public URL."""
        kwargs = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": data,
            "CacheControl": IMMUTABLE_CACHE_CONTROL,
        }
        if content_type:
            kwargs["ContentType"] = content_type

        client = self.client
        try:
            await asyncio.to_thread(client.put_object, **kwargs)
        except (BotoCoreError, ClientError) as exc:
            logger.error("Storage upload failed for %s: %s", key, exc)
            raise UpstreamError(f"storage upload failed for {key}") from exc

        logger.info("Stored %s (%d bytes)", key, len(data))
        return self.public_url(key)

    async def delete(self, key: str) -> None:
        client = self.client
        try:
            await asyncio.to_thread(client.delete_object, Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            logger.error("Storage delete failed for %s: %s", key, exc)
            raise UpstreamError(f"storage delete failed for {key}") from exc


def get_storage() -> Storage:
    """FastAPI dependency — overridden in tests."""
    return MediaStorage()
