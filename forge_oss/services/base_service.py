import logging
from typing import Any
from typing import Dict
from typing import TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError

from forge_oss.auth import Authenticator
from forge_oss.errors import DecodeError
from forge_oss.errors import NetworkError
from forge_oss.errors import RemoteError
from forge_oss.utils import redact_url


logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class BaseService:
    """Shared plumbing for the single-request OSS calls.

    Translates transport failures, non-200 answers and unparsable bodies into
    the error kinds of ``forge_oss.errors``.
    """

    def __init__(self, client: httpx.AsyncClient, authenticator: Authenticator) -> None:
        self._client = client
        self._authenticator = authenticator

    async def _auth_headers(self, scopes: str) -> Dict[str, str]:
        token = await self._authenticator.get_token(scopes)
        return {"Authorization": f"Bearer {token.access_token}"}

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {redact_url(url)} failed: {e!r}") from e

    @staticmethod
    def _check(response: httpx.Response, expected: int = 200) -> None:
        if response.status_code != expected:
            raise RemoteError(response.status_code, response.text, url=redact_url(str(response.request.url)))

    @staticmethod
    def _decode(response: httpx.Response, model: type[M]) -> M:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            error_summary = str(e).split("\n")[0]
            logger.error(f"Response validation failed: {error_summary} | Response: {response.text[:500]}")
            raise DecodeError(f"invalid {model.__name__} response: {error_summary}") from e
