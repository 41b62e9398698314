"""S3-compatible object storage client used for best-effort deletes."""

from __future__ import annotations

import logging
from typing import Any

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from src.config import Settings
from src.exceptions import DependencyException

logger = logging.getLogger(__name__)


class S3ObjectStorageClient:
    """Thin aioboto3 wrapper; one client context per call keeps the worker stateless."""

    def __init__(
        self,
        *,
        endpoint_url: str | None = None,
        region_name: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        session: aioboto3.Session | None = None,
    ) -> None:
        self._session = session or aioboto3.Session()
        self._client_kwargs: dict[str, Any] = {}
        if endpoint_url:
            self._client_kwargs["endpoint_url"] = endpoint_url
        if region_name:
            self._client_kwargs["region_name"] = region_name
        if access_key_id and secret_access_key:
            self._client_kwargs["aws_access_key_id"] = access_key_id
            self._client_kwargs["aws_secret_access_key"] = secret_access_key

    @classmethod
    def from_settings(cls, settings: Settings) -> S3ObjectStorageClient | None:
        """Return a client when a bucket is configured, else ``None``."""
        if not settings.storage_bucket.strip():
            return None
        return cls(
            endpoint_url=settings.storage_endpoint_url or None,
            region_name=settings.storage_region or None,
            access_key_id=settings.storage_access_key_id or None,
            secret_access_key=settings.storage_secret_access_key or None,
        )

    async def delete_object(self, bucket: str, key: str) -> None:
        if not bucket or not key:
            raise ValueError("bucket and key are required")
        try:
            async with self._session.client("s3", **self._client_kwargs) as client:
                await client.delete_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise DependencyException(f"delete object {bucket}/{key}: {exc}") from exc
        logger.info("Object deleted from storage bucket=%s key=%s", bucket, key)
