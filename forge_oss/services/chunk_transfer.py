import logging

import httpx

from forge_oss.errors import NetworkError
from forge_oss.errors import RemoteError
from forge_oss.errors import SignedUrlExpiredError
from forge_oss.utils import redact_url


logger = logging.getLogger(__name__)


class ChunkTransfer:
    """PUTs one part of a file to its signed S3 URL."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def upload_chunk(self, signed_url: str, data: bytes) -> None:
        """
        Upload ``data`` as the whole body of a PUT to ``signed_url``.

        S3 does not accept chunked transfer encoding here, so the length is
        always sent explicitly.

        Raises:
            SignedUrlExpiredError: On 403, the URL is no longer valid
            RemoteError: On any other non-200 status
            NetworkError: On transport failures
        """
        headers = {
            "Content-Type": "application/octet-stream",
            "Content-Length": str(len(data)),
        }
        try:
            response = await self._client.put(signed_url, content=data, headers=headers)
        except httpx.TransportError as e:
            raise NetworkError(f"PUT {redact_url(signed_url)} failed: {e!r}") from e

        if response.status_code == 200:
            logger.debug(f"Uploaded {len(data)} bytes to {redact_url(signed_url)}")
            return

        if response.status_code == 403:
            raise SignedUrlExpiredError(response.status_code, response.text, url=redact_url(signed_url))
        raise RemoteError(response.status_code, response.text, url=redact_url(signed_url))
