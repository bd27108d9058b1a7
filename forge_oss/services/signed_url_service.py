"""
Signed S3 upload URLs for the OSS direct-to-S3 protocol.

Maps to:
    GET  buckets/:bucketKey/objects/:objectKey/signeds3upload  (request part URLs)
    POST buckets/:bucketKey/objects/:objectKey/signeds3upload  (complete the upload)
"""

from __future__ import annotations

import dataclasses
import logging
import time
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx

from forge_oss.auth import SCOPE_DATA_READ
from forge_oss.auth import SCOPE_DATA_WRITE
from forge_oss.auth import Authenticator
from forge_oss.errors import DecodeError
from forge_oss.models import SignedUploadUrls
from forge_oss.models import UploadResult
from forge_oss.services.base_service import BaseService


if TYPE_CHECKING:
    from forge_oss.upload_job import UploadJob


logger = logging.getLogger(__name__)

SIGNED_S3_UPLOAD_ENDPOINT = "signeds3upload"
MIN_MINUTES_EXPIRATION = 1
MAX_MINUTES_EXPIRATION = 60
UPLOAD_SCOPES = f"{SCOPE_DATA_WRITE} {SCOPE_DATA_READ}"


@dataclasses.dataclass
class SignedUrlBatch:
    """Signed URLs for one contiguous range of parts, usable once each until they expire."""

    upload_key: str
    first_part: int
    urls: dict[int, str]
    minutes_expiration: int
    issued_at: float = dataclasses.field(default_factory=time.monotonic)

    @property
    def expires_at(self) -> float:
        return self.issued_at + self.minutes_expiration * 60

    def is_expired(self, now: float | None = None) -> bool:
        return (time.monotonic() if now is None else now) >= self.expires_at

    def take(self, part_number: int) -> str:
        """Hand out the URL of a part; a URL is never handed out twice."""
        try:
            return self.urls.pop(part_number)
        except KeyError:
            raise KeyError(f"no unused signed URL for part {part_number}") from None


def clamp_minutes_expiration(minutes: int) -> int:
    return max(MIN_MINUTES_EXPIRATION, min(MAX_MINUTES_EXPIRATION, minutes))


class SignedUrlProvider(BaseService):
    def __init__(
        self,
        client: httpx.AsyncClient,
        authenticator: Authenticator,
        bucket_api_path: str = "/oss/v2/buckets",
    ) -> None:
        super().__init__(client, authenticator)
        self._bucket_api_path = bucket_api_path.rstrip("/")

    def signed_s3_upload_path(self, bucket_key: str, object_key: str) -> str:
        return (
            f"{self._bucket_api_path}/{quote(bucket_key, safe='')}"
            f"/objects/{quote(object_key, safe='')}/{SIGNED_S3_UPLOAD_ENDPOINT}"
        )

    async def get_signed_upload_urls(self, job: UploadJob, first_part: int, parts: int) -> SignedUrlBatch:
        """
        Request signed URLs for ``parts`` parts starting at ``first_part``.

        The upload key is only sent once the job has one, so the first call
        opens a new upload and later calls extend the same one.

        Raises:
            AuthError: If no token can be acquired
            RemoteError: If the endpoint answers with a non-200 status
            DecodeError: If the body is not a valid signed URL response
        """
        params: dict[str, str | int] = {}
        if job.upload_key:
            params["uploadKey"] = job.upload_key
        params["firstPart"] = first_part
        params["parts"] = parts
        minutes = clamp_minutes_expiration(job.minutes_expiration)
        params["minutesExpiration"] = minutes

        headers = await self._auth_headers(UPLOAD_SCOPES)
        response = await self._send(
            "GET",
            self.signed_s3_upload_path(job.bucket_key, job.object_key),
            params=params,
            headers=headers,
        )
        self._check(response)
        signed = self._decode(response, SignedUploadUrls)

        if len(signed.urls) != parts:
            raise DecodeError(f"requested {parts} signed URLs starting at part {first_part}, got {len(signed.urls)}")

        logger.debug(f"Got {parts} signed URLs for parts {first_part}-{first_part + parts - 1}")
        return SignedUrlBatch(
            upload_key=signed.upload_key,
            first_part=first_part,
            urls={first_part + i: url for i, url in enumerate(signed.urls)},
            minutes_expiration=minutes,
        )

    async def complete_upload(self, job: UploadJob) -> UploadResult:
        """
        Instruct OSS to assemble the uploaded parts into an object.

        The object is not accessible until this is called, and it must be
        called within 24 hours of the upload beginning. OSS checks ``size``
        against the assembled blob and rejects a mismatch.

        Raises:
            AuthError: If no token can be acquired
            RemoteError: If the endpoint answers with a non-200 status
            DecodeError: If the body is not a valid object description
        """
        headers = await self._auth_headers(UPLOAD_SCOPES)
        headers["Content-Type"] = "application/json"
        headers["x-ads-meta-Content-Type"] = job.content_type

        response = await self._send(
            "POST",
            self.signed_s3_upload_path(job.bucket_key, job.object_key),
            json={"uploadKey": job.upload_key, "size": job.file_size},
            headers=headers,
        )
        self._check(response)
        return self._decode(response, UploadResult)
