"""
OSS API client for buckets and objects.

Uploads go through the direct-to-S3 protocol driven by UploadJobOrchestrator;
the remaining calls are single requests.

API Documentation: https://aps.autodesk.com/en/docs/data/v2/reference/http/
"""

import logging
from pathlib import Path
from typing import Any
from urllib.parse import quote

import httpx

from forge_oss.auth import SCOPE_BUCKET_READ
from forge_oss.auth import SCOPE_DATA_READ
from forge_oss.auth import Authenticator
from forge_oss.auth import TwoLeggedAuthenticator
from forge_oss.config import Config
from forge_oss.config import Region
from forge_oss.config import get_config
from forge_oss.errors import DecodeError
from forge_oss.errors import OSSError
from forge_oss.errors import SizeMismatchError
from forge_oss.models import BucketContent
from forge_oss.models import Buckets
from forge_oss.models import SignedDownloadUrl
from forge_oss.models import UploadResult
from forge_oss.retry import RetryPolicy
from forge_oss.services.base_service import BaseService
from forge_oss.services.chunk_transfer import ChunkTransfer
from forge_oss.services.signed_url_service import SignedUrlProvider
from forge_oss.upload_job import DEFAULT_CONTENT_TYPE
from forge_oss.upload_job import UploadJobOrchestrator
from forge_oss.utils import redact_url


logger = logging.getLogger(__name__)


class OssApiClient(BaseService):
    """
    HTTP API client for the OSS v2 bucket API.
    """

    def __init__(
        self,
        config: Config | None = None,
        authenticator: Authenticator | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the OSS API client.

        Args:
            config: Optional configuration. Falls back to get_config() if not provided.
            authenticator: Optional token source. Defaults to the two-legged flow with
                the configured client credentials.
            http_client: Optional pre-built httpx client (e.g. with a mock transport).
        """
        self._config = config or get_config()
        self._owns_client = http_client is None
        client = http_client or httpx.AsyncClient(
            base_url=self._config.forge_base_url,
            timeout=httpx.Timeout(
                self._config.http_timeout_seconds,
                connect=self._config.http_connect_timeout_seconds,
            ),
            follow_redirects=True,
        )
        authenticator = authenticator or TwoLeggedAuthenticator(
            client,
            self._config.forge_client_id,
            self._config.forge_client_secret,
            token_path=self._config.authentication_path,
        )
        super().__init__(client, authenticator)

        self.retry_policy = RetryPolicy(
            attempts=self._config.retry_attempts,
            interval=self._config.retry_interval_seconds,
        )
        self.signed_urls = SignedUrlProvider(client, authenticator, self._config.bucket_api_path)
        self.chunk_transfer = ChunkTransfer(client)
        self.uploader = UploadJobOrchestrator.from_config(self.signed_urls, self.chunk_transfer, self._config)

    async def __aenter__(self) -> "OssApiClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    def _bucket_path(self, bucket_key: str) -> str:
        return f"{self._config.bucket_api_path}/{quote(bucket_key, safe='')}"

    def _object_path(self, bucket_key: str, object_key: str) -> str:
        return f"{self._bucket_path(bucket_key)}/objects/{quote(object_key, safe='')}"

    async def upload_object(
        self,
        bucket_key: str,
        object_key: str,
        file_path: str | Path,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> UploadResult:
        """
        Upload a local file as ``object_key`` into ``bucket_key``.

        Returns:
            UploadResult: Details of the finalized object, including its objectId (URN)

        Raises:
            OSSError: Any upload failure, annotated with the failing stage
        """
        return await self.uploader.upload(file_path, bucket_key, object_key, content_type=content_type)

    async def list_buckets(
        self,
        region: Region | None = None,
        limit: int | None = None,
        start_at: str | None = None,
    ) -> Buckets:
        """
        List the buckets owned by the application.

        Maps to: GET buckets
        """
        params: dict[str, str | int] = {"region": (region or self._config.forge_region).value}
        if limit:
            params["limit"] = limit
        if start_at:
            params["startAt"] = start_at

        path = self._config.bucket_api_path
        return await self.retry_policy.run(self._get_model, path, Buckets, SCOPE_BUCKET_READ, params)

    async def list_objects(
        self,
        bucket_key: str,
        limit: int | None = None,
        begins_with: str | None = None,
        start_at: str | None = None,
    ) -> BucketContent:
        """
        List the objects of a bucket, with details on each item.

        Maps to: GET buckets/:bucketKey/objects
        """
        params: dict[str, str | int] = {}
        if begins_with:
            params["beginsWith"] = begins_with
        if limit:
            params["limit"] = limit
        if start_at:
            params["startAt"] = start_at

        path = f"{self._bucket_path(bucket_key)}/objects"
        return await self.retry_policy.run(self._get_model, path, BucketContent, SCOPE_DATA_READ, params)

    async def get_signed_download_url(self, bucket_key: str, object_key: str) -> SignedDownloadUrl:
        """
        Get a signed S3 URL to download an object directly.

        Maps to: GET buckets/:bucketKey/objects/:objectKey/signeds3download
        """
        path = f"{self._object_path(bucket_key, object_key)}/signeds3download"
        return await self.retry_policy.run(self._get_model, path, SignedDownloadUrl, SCOPE_DATA_READ, {})

    async def download_object(self, bucket_key: str, object_key: str) -> bytes:
        """
        Download an object through its signed S3 URL.

        Raises:
            DecodeError: If OSS does not hand out a URL (e.g. the object is still being processed)
            SizeMismatchError: If the downloaded byte count differs from the advertised size
        """
        signed = await self.get_signed_download_url(bucket_key, object_key)
        if not signed.url:
            raise DecodeError(f"no download URL for {bucket_key}/{object_key} (status={signed.status})")

        try:
            data = await self.retry_policy.run(self._fetch_signed, signed.url)
        except OSSError as e:
            raise e.add_context(f"downloading {bucket_key}/{object_key} from {redact_url(signed.url)}")

        if len(data) != signed.size:
            raise SizeMismatchError(expected=signed.size, received=len(data)).add_context(
                f"downloading {bucket_key}/{object_key}"
            )
        logger.info(f"Downloaded {bucket_key}/{object_key} ({len(data)} bytes)")
        return data

    async def _get_model(self, path: str, model: Any, scopes: str, params: dict[str, str | int]) -> Any:
        headers = await self._auth_headers(scopes)
        response = await self._send("GET", path, params=params, headers=headers)
        self._check(response)
        return self._decode(response, model)

    async def _fetch_signed(self, url: str) -> bytes:
        # Signed URLs carry their own authorization
        response = await self._send("GET", url)
        self._check(response)
        return response.content
