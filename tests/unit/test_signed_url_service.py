from pathlib import Path
from unittest.mock import AsyncMock
from unittest.mock import MagicMock
from unittest.mock import patch

import httpx
import pytest

from forge_oss.auth import StaticTokenAuthenticator
from forge_oss.errors import AuthError
from forge_oss.errors import DecodeError
from forge_oss.errors import NetworkError
from forge_oss.errors import RemoteError
from forge_oss.models import UploadResult
from forge_oss.services.signed_url_service import SignedUrlBatch
from forge_oss.services.signed_url_service import SignedUrlProvider
from forge_oss.services.signed_url_service import clamp_minutes_expiration
from forge_oss.upload_job import UploadJob


def make_job(**overrides) -> UploadJob:
    fields = {
        "file_path": Path("/tmp/model.rvt"),
        "bucket_key": "my-bucket",
        "object_key": "model.rvt",
        "file_size": 1234,
        "chunk_size": 5 * 1024 * 1024,
        "total_parts": 1,
        "number_of_batches": 1,
        "minutes_expiration": 60,
    }
    fields.update(overrides)
    return UploadJob(**fields)


@pytest.mark.asyncio
async def test_first_request_omits_upload_key(http_client, mock_oss, authenticator):
    provider = SignedUrlProvider(http_client, authenticator)

    batch = await provider.get_signed_upload_urls(make_job(), first_part=1, parts=3)

    assert mock_oss.url_requests == [{"firstPart": "1", "parts": "3", "minutesExpiration": "60"}]
    assert batch.upload_key == "upload-key-1"
    assert sorted(batch.urls) == [1, 2, 3]
    assert batch.first_part == 1


@pytest.mark.asyncio
async def test_later_request_sends_known_upload_key(http_client, mock_oss, authenticator):
    provider = SignedUrlProvider(http_client, authenticator)

    batch = await provider.get_signed_upload_urls(make_job(upload_key="session-1"), first_part=26, parts=5)

    assert mock_oss.url_requests[0]["uploadKey"] == "session-1"
    assert mock_oss.url_requests[0]["firstPart"] == "26"
    assert sorted(batch.urls) == [26, 27, 28, 29, 30]


@pytest.mark.asyncio
async def test_request_targets_signeds3upload_with_bearer_token():
    client = httpx.AsyncClient(base_url="https://developer.api.autodesk.com")
    provider = SignedUrlProvider(client, StaticTokenAuthenticator("token-xyz"))
    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_response.json.return_value = {"uploadKey": "k", "urls": ["https://s3.example.com/upload/1?sig=1"]}

    with patch.object(client, "request", new_callable=AsyncMock) as mock_request:
        mock_request.return_value = mock_response

        await provider.get_signed_upload_urls(make_job(object_key="dir/model 1.rvt"), first_part=1, parts=1)

        call_args = mock_request.call_args
        assert call_args.args[0] == "GET"
        assert call_args.args[1] == "/oss/v2/buckets/my-bucket/objects/dir%2Fmodel%201.rvt/signeds3upload"
        assert call_args.kwargs["headers"]["Authorization"] == "Bearer token-xyz"

    await client.aclose()


@pytest.mark.asyncio
async def test_minutes_expiration_is_clamped(http_client, mock_oss, authenticator):
    provider = SignedUrlProvider(http_client, authenticator)

    await provider.get_signed_upload_urls(make_job(minutes_expiration=500), first_part=1, parts=1)

    assert mock_oss.url_requests[0]["minutesExpiration"] == "60"
    assert clamp_minutes_expiration(0) == 1


@pytest.mark.asyncio
async def test_non_200_raises_remote_error(http_client, mock_oss, authenticator):
    mock_oss.url_request_statuses = [500]
    provider = SignedUrlProvider(http_client, authenticator)

    with pytest.raises(RemoteError) as exc_info:
        await provider.get_signed_upload_urls(make_job(), first_part=1, parts=1)

    assert exc_info.value.status == 500
    assert "signed url failure 500" in exc_info.value.body


@pytest.mark.asyncio
async def test_malformed_body_raises_decode_error(authenticator):
    client = httpx.AsyncClient(
        base_url="https://developer.api.autodesk.com",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>oops</html>")),
    )
    provider = SignedUrlProvider(client, authenticator)

    with pytest.raises(DecodeError):
        await provider.get_signed_upload_urls(make_job(), first_part=1, parts=1)

    await client.aclose()


@pytest.mark.asyncio
async def test_too_few_urls_raises_decode_error(authenticator):
    client = httpx.AsyncClient(
        base_url="https://developer.api.autodesk.com",
        transport=httpx.MockTransport(
            lambda request: httpx.Response(200, json={"uploadKey": "k", "urls": ["https://s3.example.com/1"]})
        ),
    )
    provider = SignedUrlProvider(client, authenticator)

    with pytest.raises(DecodeError):
        await provider.get_signed_upload_urls(make_job(), first_part=1, parts=2)

    await client.aclose()


@pytest.mark.asyncio
async def test_transport_failure_raises_network_error(authenticator):
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.AsyncClient(base_url="https://developer.api.autodesk.com", transport=httpx.MockTransport(refuse))
    provider = SignedUrlProvider(client, authenticator)

    with pytest.raises(NetworkError):
        await provider.get_signed_upload_urls(make_job(), first_part=1, parts=1)

    await client.aclose()


@pytest.mark.asyncio
async def test_auth_failure_raises_auth_error(http_client):
    authenticator = MagicMock()
    authenticator.get_token = AsyncMock(side_effect=AuthError("no credentials"))
    provider = SignedUrlProvider(http_client, authenticator)

    with pytest.raises(AuthError):
        await provider.get_signed_upload_urls(make_job(), first_part=1, parts=1)


@pytest.mark.asyncio
async def test_complete_upload_posts_upload_key_and_size(http_client, mock_oss, authenticator):
    provider = SignedUrlProvider(http_client, authenticator)

    result = await provider.complete_upload(make_job(upload_key="session-1", file_size=999))

    assert isinstance(result, UploadResult)
    assert result.size == 999
    assert result.object_id == "urn:adsk.objects:os.object:my-bucket/model.rvt"
    assert mock_oss.finalize_requests == [{"uploadKey": "session-1", "size": 999}]
    headers = mock_oss.finalize_headers[0]
    assert headers["Authorization"] == "Bearer token-abc"
    assert headers["Content-Type"] == "application/json"
    assert headers["x-ads-meta-Content-Type"] == "application/octet-stream"


def test_batch_hands_out_each_url_once():
    batch = SignedUrlBatch(upload_key="k", first_part=1, urls={1: "u1", 2: "u2"}, minutes_expiration=60)

    assert batch.take(1) == "u1"
    with pytest.raises(KeyError):
        batch.take(1)


def test_batch_expires_after_window():
    batch = SignedUrlBatch(upload_key="k", first_part=1, urls={}, minutes_expiration=2, issued_at=100.0)

    assert not batch.is_expired(now=219.0)
    assert batch.is_expired(now=220.0)
