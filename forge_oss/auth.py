"""
Bearer token acquisition for the OSS endpoints.

The upload core only needs something with ``get_token(scopes)``; the
two-legged (client credentials) flow is provided for convenience.
"""

import asyncio
import logging
from typing import Protocol

import httpx
from pydantic import ValidationError

from forge_oss.errors import AuthError
from forge_oss.models import AccessToken


logger = logging.getLogger(__name__)

SCOPE_DATA_READ = "data:read"
SCOPE_DATA_WRITE = "data:write"
SCOPE_BUCKET_READ = "bucket:read"

# Refresh cached tokens this many seconds before they actually expire
TOKEN_EXPIRY_MARGIN_SECONDS = 60.0


class Authenticator(Protocol):
    async def get_token(self, scopes: str) -> AccessToken: ...


class StaticTokenAuthenticator:
    """Hands out a token that was obtained elsewhere, whatever the scopes."""

    def __init__(self, access_token: str) -> None:
        self._token = AccessToken(access_token=access_token)

    async def get_token(self, scopes: str) -> AccessToken:
        return self._token


class TwoLeggedAuthenticator:
    """
    Client-credentials OAuth flow against /authentication/v2/token.

    Tokens are cached per scope string until shortly before they expire.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        client_id: str,
        client_secret: str,
        token_path: str = "/authentication/v2/token",
    ) -> None:
        self._client = client
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_path = token_path
        self._cache: dict[str, AccessToken] = {}
        self._lock = asyncio.Lock()

    async def get_token(self, scopes: str) -> AccessToken:
        """
        Get a bearer token for the given space-separated scopes.

        Raises:
            AuthError: If credentials are missing or the token request fails
        """
        async with self._lock:
            cached = self._cache.get(scopes)
            if cached is not None and not cached.expires_within(TOKEN_EXPIRY_MARGIN_SECONDS):
                return cached

            token = await self._request_token(scopes)
            self._cache[scopes] = token
            return token

    async def _request_token(self, scopes: str) -> AccessToken:
        if not self._client_id or not self._client_secret:
            raise AuthError("FORGE_CLIENT_ID and FORGE_CLIENT_SECRET must be set")

        logger.debug(f"Requesting two-legged token for scopes={scopes!r}")
        try:
            response = await self._client.post(
                self._token_path,
                data={"grant_type": "client_credentials", "scope": scopes},
                auth=(self._client_id, self._client_secret),
                headers={"Accept": "application/json"},
            )
        except httpx.TransportError as e:
            raise AuthError(f"token request failed: {e}") from e

        if response.status_code != 200:
            raise AuthError(f"token request failed: [{response.status_code}] {response.text}")

        try:
            return AccessToken.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise AuthError(f"invalid token response: {e}") from e
