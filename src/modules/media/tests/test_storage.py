"""Tests for the S3 object storage client."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from botocore.exceptions import ClientError

from src.config import Settings
from src.exceptions import DependencyException
from src.modules.media.storage import S3ObjectStorageClient


def _make_session(s3_client: AsyncMock) -> MagicMock:
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=s3_client)
    context.__aexit__ = AsyncMock(return_value=False)
    session = MagicMock()
    session.client.return_value = context
    return session


class TestS3ObjectStorageClient:
    @pytest.mark.asyncio
    async def test_delete_object(self):
        s3 = AsyncMock()
        session = _make_session(s3)
        client = S3ObjectStorageClient(
            endpoint_url="http://minio:9000", region_name="us-east-1", session=session
        )

        await client.delete_object("license-docs", "stores/1/license.pdf")

        session.client.assert_called_once_with(
            "s3", endpoint_url="http://minio:9000", region_name="us-east-1"
        )
        s3.delete_object.assert_awaited_once_with(Bucket="license-docs", Key="stores/1/license.pdf")

    @pytest.mark.asyncio
    async def test_client_error_becomes_dependency_error(self):
        s3 = AsyncMock()
        s3.delete_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "DeleteObject"
        )
        client = S3ObjectStorageClient(session=_make_session(s3))

        with pytest.raises(DependencyException, match="license-docs/key"):
            await client.delete_object("license-docs", "key")

    @pytest.mark.asyncio
    async def test_requires_bucket_and_key(self):
        client = S3ObjectStorageClient(session=_make_session(AsyncMock()))
        with pytest.raises(ValueError):
            await client.delete_object("", "key")

    def test_from_settings_without_bucket(self):
        assert S3ObjectStorageClient.from_settings(Settings(storage_bucket="")) is None

    def test_from_settings_passes_credentials(self):
        client = S3ObjectStorageClient.from_settings(
            Settings(
                storage_bucket="license-docs",
                storage_access_key_id="key",
                storage_secret_access_key="secret",
            )
        )
        assert client._client_kwargs["aws_access_key_id"] == "key"
        assert client._client_kwargs["aws_secret_access_key"] == "secret"
