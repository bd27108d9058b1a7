"""Response models of the OSS (Object Storage Service) v2 API."""

import time
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field


class OSSModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AccessToken(OSSModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 3599
    obtained_at: float = Field(default_factory=time.monotonic, exclude=True)

    def expires_within(self, seconds: float) -> bool:
        return time.monotonic() + seconds >= self.obtained_at + self.expires_in


class SignedUploadUrls(OSSModel):
    """Response of GET .../signeds3upload."""

    upload_key: str = Field(alias="uploadKey")
    urls: list[str]
    upload_expiration: str | None = Field(default=None, alias="uploadExpiration")
    url_expiration: str | None = Field(default=None, alias="urlExpiration")


class UploadResult(OSSModel):
    """Response of POST .../signeds3upload: the finalized object."""

    bucket_key: str = Field(alias="bucketKey")
    object_id: str = Field(alias="objectId")
    object_key: str = Field(alias="objectKey")
    size: int | None = None
    content_type: str | None = Field(default=None, alias="contentType")
    location: str | None = None
    sha1: str | None = None


class SignedDownloadParams(OSSModel):
    content_type: str | None = Field(default=None, alias="content-type")
    content_disposition: str | None = Field(default=None, alias="content-disposition")


class SignedDownloadUrl(OSSModel):
    """Response of GET .../signeds3download."""

    status: str
    url: str | None = None
    params: SignedDownloadParams = Field(default_factory=SignedDownloadParams)
    size: int
    sha1: str | None = None


class ObjectDetails(OSSModel):
    bucket_key: str = Field(alias="bucketKey")
    object_id: str = Field(alias="objectId")
    object_key: str = Field(alias="objectKey")
    sha1: str | None = None
    size: int | None = None
    location: str | None = None


class BucketContent(OSSModel):
    """Response of GET buckets/:bucketKey/objects."""

    items: list[ObjectDetails] = Field(default_factory=list)
    next: str | None = None


class BucketSummary(OSSModel):
    bucket_key: str = Field(alias="bucketKey")
    created_date: int | None = Field(default=None, alias="createdDate")
    policy_key: str | None = Field(default=None, alias="policyKey")


class Buckets(OSSModel):
    """Response of GET buckets."""

    items: list[BucketSummary] = Field(default_factory=list)
    next: str | None = None


def dump(model: BaseModel) -> dict[str, Any]:
    """Serialize a response model back to its wire field names."""
    return model.model_dump(by_alias=True, exclude_none=True)
