"""Typed endpoint wrappers for the game backend."""
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from slotclient.api_client import ApiClient
from slotclient.errors import ErrorCode, GameError
from slotclient.protocol import (
    AmountRequest,
    AuthResponse,
    BalanceResponse,
    BetRequest,
    CascadeSpinResponse,
    LineSpinResponse,
    LoginRequest,
    RegisterRequest,
)


ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_response(model: type[ModelT], data: Any, endpoint: str) -> ModelT:
    """Validate a response body, raising MALFORMED_PAYLOAD on mismatch."""
    if data is None:
        raise GameError(ErrorCode.MALFORMED_PAYLOAD, f"Empty response from {endpoint}")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise GameError(
            ErrorCode.MALFORMED_PAYLOAD,
            f"Unexpected response from {endpoint}: {e.error_count()} invalid field(s)",
        ) from e


class LineGameAPI:
    """Endpoints of the 5x3 payline game."""

    def __init__(self, client: ApiClient):
        self._client = client

    async def spin(self, bet: float) -> LineSpinResponse:
        data = await self._client.request(
            "POST", "/line/spin", BetRequest(bet=bet).model_dump()
        )
        return parse_response(LineSpinResponse, data, "/line/spin")

    async def buy_bonus(self, cost: float) -> LineSpinResponse:
        """
        Buy the bonus round; the response is the first bonus spin.

        The backend expects the purchase cost, not the bet, in the `bet` field.
        """
        data = await self._client.request(
            "POST", "/line/buy-bonus", BetRequest(bet=cost).model_dump()
        )
        return parse_response(LineSpinResponse, data, "/line/buy-bonus")


class CascadeGameAPI:
    """Endpoints of the 7x7 cascade game."""

    def __init__(self, client: ApiClient):
        self._client = client

    async def spin(self, bet: float) -> CascadeSpinResponse:
        data = await self._client.request(
            "POST", "/cascade/spin", BetRequest(bet=bet).model_dump()
        )
        return parse_response(CascadeSpinResponse, data, "/cascade/spin")

    async def buy_bonus(self, amount: float) -> None:
        """Buy the bonus round. Acknowledgement only, no spin payload."""
        await self._client.request(
            "POST", "/cascade/buy-bonus", AmountRequest(amount=amount).model_dump()
        )


class PayAPI:
    """Balance and deposit endpoints."""

    def __init__(self, client: ApiClient):
        self._client = client

    async def get_balance(self) -> float:
        data = await self._client.request("GET", "/pay/balance")
        return parse_response(BalanceResponse, data, "/pay/balance").balance

    async def deposit(self, amount: float) -> None:
        await self._client.request(
            "POST", "/pay/deposit", AmountRequest(amount=amount).model_dump()
        )


class AuthAPI:
    """Authentication endpoints. The token is installed on the client on success."""

    def __init__(self, client: ApiClient):
        self._client = client

    async def login(self, login: str, password: str) -> AuthResponse:
        data = await self._client.request(
            "POST",
            "/auth/login",
            LoginRequest(login=login, password=password).model_dump(),
        )
        auth = parse_response(AuthResponse, data, "/auth/login")
        await self._client.set_auth_token(auth.access_token)
        return auth

    async def register(self, name: str, login: str, password: str) -> AuthResponse:
        data = await self._client.request(
            "POST",
            "/auth/register",
            RegisterRequest(name=name, login=login, password=password).model_dump(),
        )
        auth = parse_response(AuthResponse, data, "/auth/register")
        await self._client.set_auth_token(auth.access_token)
        return auth

    async def refresh(self) -> AuthResponse:
        data = await self._client.request("POST", "/auth/refresh", {})
        auth = parse_response(AuthResponse, data, "/auth/refresh")
        await self._client.set_auth_token(auth.access_token)
        return auth

    async def logout(self) -> None:
        """Close the server session. The local token is cleared even on failure."""
        try:
            await self._client.request("POST", "/auth/logout", {})
        finally:
            await self._client.clear_auth_token()
