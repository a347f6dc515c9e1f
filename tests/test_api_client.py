"""HTTP client and endpoint wrapper tests against an in-process fake backend."""
import asyncio

import httpx
import pytest
import pytest_asyncio

from slotclient.api_client import ApiClient
from slotclient.config import Settings
from slotclient.errors import ErrorCode, GameError
from slotclient.game_api import CascadeGameAPI, LineGameAPI, PayAPI
from slotclient.logic.models import SessionPhase
from slotclient.logic.rng import SeededRNG
from slotclient.session.line import LineGameSession
from slotclient.storage import ClientStorage
from tests.conftest import build_backend, make_cascade_response, make_cascade_round


pytestmark = pytest.mark.integration


@pytest_asyncio.fixture
async def unstored_client(backend_state):
    """ApiClient whose storage was never connected to Redis."""
    client = ApiClient(
        base_url="http://testserver",
        transport=httpx.ASGITransport(app=build_backend(backend_state)),
        storage=ClientStorage(namespace="test"),
    )
    yield client
    await client.close()


class TestTokenRefresh:
    """A 401 on a game endpoint triggers one refresh and one retry."""

    @pytest.mark.asyncio
    async def test_expired_token_is_refreshed(self, api_client, backend_state, storage):
        await api_client.set_auth_token("stale-token", persist=False)

        response = await LineGameAPI(api_client).spin(10)

        assert response.balance == 1000
        assert backend_state.refreshes == 1
        assert api_client.token == "fresh-token"
        assert await storage.get_token() == "fresh-token"

    @pytest.mark.asyncio
    async def test_concurrent_401s_refresh_once(self, api_client, backend_state):
        await api_client.set_auth_token("stale-token", persist=False)
        pay = PayAPI(api_client)

        balances = await asyncio.gather(pay.get_balance(), pay.get_balance())

        assert balances == [1000, 1000]
        assert backend_state.refreshes == 1

    @pytest.mark.asyncio
    async def test_failed_refresh_clears_token(self, api_client, backend_state, storage):
        backend_state.refresh_ok = False
        await api_client.set_auth_token("stale-token")

        with pytest.raises(GameError) as exc_info:
            await LineGameAPI(api_client).spin(10)

        assert exc_info.value.code == ErrorCode.UNAUTHORIZED
        assert exc_info.value.recoverable is False
        assert api_client.is_authenticated() is False
        assert await storage.get_token() is None

    @pytest.mark.asyncio
    async def test_refresh_keeps_token_when_storage_unavailable(
        self, unstored_client, backend_state
    ):
        await unstored_client.set_auth_token("stale-token")

        response = await LineGameAPI(unstored_client).spin(10)

        assert response.balance == 1000
        assert backend_state.refreshes == 1
        assert unstored_client.token == "fresh-token"

    @pytest.mark.asyncio
    async def test_failed_refresh_with_storage_unavailable(self, unstored_client, backend_state):
        backend_state.refresh_ok = False
        await unstored_client.set_auth_token("stale-token")

        with pytest.raises(GameError) as exc_info:
            await PayAPI(unstored_client).get_balance()

        assert exc_info.value.code == ErrorCode.UNAUTHORIZED
        assert unstored_client.is_authenticated() is False

    @pytest.mark.asyncio
    async def test_auth_endpoints_never_refresh(self, api_client, backend_state):
        with pytest.raises(GameError) as exc_info:
            await api_client.request("POST", "/auth/login", {"login": "a", "password": "nope"})

        assert exc_info.value.code == ErrorCode.UNAUTHORIZED
        assert exc_info.value.message == "Invalid credentials"
        assert backend_state.refreshes == 0


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_server_error_message_is_kept(self, api_client):
        with pytest.raises(GameError) as exc_info:
            await api_client.request("GET", "/boom")
        assert exc_info.value.code == ErrorCode.NETWORK_ERROR
        assert exc_info.value.message == "Internal failure"

    @pytest.mark.asyncio
    async def test_error_without_body(self, api_client):
        with pytest.raises(GameError) as exc_info:
            await api_client.request("GET", "/teapot")
        assert exc_info.value.message == "Request failed with status 418"

    @pytest.mark.asyncio
    async def test_invalid_json(self, api_client):
        with pytest.raises(GameError) as exc_info:
            await api_client.request("GET", "/broken")
        assert exc_info.value.code == ErrorCode.MALFORMED_PAYLOAD

    @pytest.mark.asyncio
    async def test_response_not_matching_model(self, api_client, backend_state):
        await api_client.set_auth_token("fresh-token", persist=False)
        backend_state.line_response = {"board": "nope", "balance": 1}

        with pytest.raises(GameError) as exc_info:
            await LineGameAPI(api_client).spin(10)
        assert exc_info.value.code == ErrorCode.MALFORMED_PAYLOAD

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = ApiClient(base_url="http://testserver", transport=httpx.MockTransport(refuse))
        try:
            with pytest.raises(GameError) as exc_info:
                await PayAPI(client).get_balance()
        finally:
            await client.close()
        assert exc_info.value.code == ErrorCode.NETWORK_ERROR
        assert exc_info.value.recoverable is True


class TestEndpoints:
    @pytest.mark.asyncio
    async def test_line_buy_bonus_sends_cost_in_bet_field(self, api_client, backend_state):
        await api_client.set_auth_token("fresh-token", persist=False)

        response = await LineGameAPI(api_client).buy_bonus(500)

        assert response.free_spin_count == 10
        assert backend_state.bodies == [("/line/buy-bonus", {"bet": 500})]

    @pytest.mark.asyncio
    async def test_cascade_endpoints(self, api_client, backend_state):
        await api_client.set_auth_token("fresh-token", persist=False)
        initial, steps, final = make_cascade_round()
        backend_state.cascade_response = make_cascade_response(
            None, steps, final
        ).model_dump(exclude_none=True)
        api = CascadeGameAPI(api_client)

        response = await api.spin(20)
        assert response.initial_board is None
        assert len(response.cascades) == 2
        assert response.board == final

        assert await api.buy_bonus(2000) is None
        assert backend_state.bodies == [
            ("/cascade/spin", {"bet": 20}),
            ("/cascade/buy-bonus", {"amount": 2000}),
        ]

    @pytest.mark.asyncio
    async def test_deposit_then_balance(self, api_client):
        await api_client.set_auth_token("fresh-token", persist=False)
        pay = PayAPI(api_client)

        await pay.deposit(250)

        assert await pay.get_balance() == 1250


class TestSessionOverHttp:
    """A line session against the fake backend with real asyncio sleeps."""

    @pytest.mark.asyncio
    async def test_online_spin_round_trip(self, api_client, backend_state, telemetry):
        await api_client.set_auth_token("fresh-token", persist=False)
        backend_state.line_response = {
            "board": [["B", "S1", "S1"], ["S2", "S2", "S2"], ["S3", "B", "S3"],
                      ["S4", "S4", "S4"], ["S5", "S5", "B"]],
            "line_wins": [{"line": 2, "symbol": "S1", "count": 3, "payout": 5}],
            "scatter_count": 3,
            "scatter_payout": 20,
            "awarded_free_spins": 10,
            "total_payout": 25,
            "balance": 1015,
            "free_spin_count": 10,
            "in_free_spin": False,
        }
        config = Settings(spin_duration_ms=1, spin_duration_turbo_ms=1)
        session = LineGameSession(
            api=LineGameAPI(api_client),
            online=True,
            rng=SeededRNG(1),
            telemetry=telemetry,
            config=config,
        )

        assert await session.spin() is True

        assert session.phase == SessionPhase.IDLE
        assert session.economy.balance == 1015
        assert session.economy.free_spins_left == 10
        assert session.economy.is_bonus_game is True
        assert session.last_win == 25
        assert [line.line_index for line in session.winning_lines] == [2, -1]
        assert session.winning_lines[1].positions == [(0, 0), (2, 1), (4, 2)]
        assert backend_state.bodies == [("/line/spin", {"bet": 10})]

    @pytest.mark.asyncio
    async def test_expired_token_with_storage_unavailable(
        self, unstored_client, backend_state, telemetry
    ):
        await unstored_client.set_auth_token("stale-token", persist=False)
        config = Settings(spin_duration_ms=1, spin_duration_turbo_ms=1)
        session = LineGameSession(
            api=LineGameAPI(unstored_client),
            pay=PayAPI(unstored_client),
            online=True,
            telemetry=telemetry,
            config=config,
        )

        assert await session.spin() is True

        assert session.phase == SessionPhase.IDLE
        assert session.notices == []
        assert backend_state.refreshes == 1
        assert await session.deposit(100) is True
        assert session.economy.balance == 1100
