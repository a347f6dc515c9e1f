"""HTTP transport for the game backend: bearer token, refresh and error mapping."""
import asyncio
import logging
from typing import Any

import httpx
from redis.exceptions import RedisError

from slotclient.config import settings
from slotclient.errors import ErrorCode, GameError
from slotclient.protocol import AuthResponse, ErrorResponse
from slotclient.storage import ClientStorage


logger = logging.getLogger(__name__)


class ApiClient:
    """
    Thin wrapper over httpx.AsyncClient.

    Handles:
    - Bearer token header (persisted through ClientStorage when attached)
    - One refresh + retry on 401 for non-auth endpoints
    - Mapping transport and HTTP failures to GameError
    """

    # Endpoints that never trigger a refresh
    AUTH_PATHS = {"/auth/login", "/auth/register", "/auth/refresh"}

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        storage: ClientStorage | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout or settings.request_timeout_seconds,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )
        self._storage = storage
        self._token: str | None = None
        self._refresh_lock = asyncio.Lock()

    @property
    def token(self) -> str | None:
        return self._token

    def is_authenticated(self) -> bool:
        return self._token is not None

    async def set_auth_token(self, token: str, persist: bool = True) -> None:
        """Set bearer token for subsequent calls."""
        self._token = token
        self._client.headers["Authorization"] = f"Bearer {token}"
        if persist and self._storage is not None:
            try:
                await self._storage.save_token(token)
            except (RuntimeError, RedisError) as e:
                # The in-memory token stays valid for this process
                logger.warning("Failed to persist auth token: %s", e)

    async def clear_auth_token(self) -> None:
        """Drop bearer token locally and from storage."""
        self._token = None
        self._client.headers.pop("Authorization", None)
        if self._storage is not None:
            try:
                await self._storage.clear_token()
            except (RuntimeError, RedisError) as e:
                logger.warning("Failed to clear stored auth token: %s", e)

    async def close(self) -> None:
        await self._client.aclose()

    async def request(
        self, method: str, path: str, json: dict[str, Any] | None = None
    ) -> Any:
        """
        Send a request and return the decoded JSON body (None when empty).

        Raises GameError on transport failure or non-2xx status.
        """
        token_before = self._token
        response = await self._send(method, path, json)

        if response.status_code == 401 and path not in self.AUTH_PATHS:
            async with self._refresh_lock:
                # Another request may have refreshed while we waited
                if self._token == token_before:
                    await self._refresh()
            response = await self._send(method, path, json)

        if response.is_error:
            raise self._to_error(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise GameError(ErrorCode.MALFORMED_PAYLOAD, f"Invalid JSON from {path}") from e

    async def _send(
        self, method: str, path: str, json: dict[str, Any] | None
    ) -> httpx.Response:
        try:
            return await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.warning("Request %s %s failed: %s", method, path, e)
            raise GameError(ErrorCode.NETWORK_ERROR, str(e) or None) from e

    async def _refresh(self) -> None:
        """Exchange the refresh cookie for a new access token."""
        response = await self._send("POST", "/auth/refresh", {})
        if response.is_error:
            logger.info("Token refresh rejected with status %d", response.status_code)
            await self.clear_auth_token()
            raise GameError(ErrorCode.UNAUTHORIZED)
        try:
            auth = AuthResponse.model_validate(response.json())
        except ValueError as e:
            await self.clear_auth_token()
            raise GameError(ErrorCode.MALFORMED_PAYLOAD, "Invalid refresh response") from e
        await self.set_auth_token(auth.access_token)
        logger.info("Access token refreshed")

    @staticmethod
    def _to_error(response: httpx.Response) -> GameError:
        """Build a GameError from a non-2xx response, preferring the server's message."""
        message = None
        try:
            message = ErrorResponse.model_validate(response.json()).error or None
        except ValueError:
            pass
        if message is None:
            message = f"Request failed with status {response.status_code}"
        code = ErrorCode.UNAUTHORIZED if response.status_code == 401 else ErrorCode.NETWORK_ERROR
        return GameError(code, message)
