"""Pytest fixtures for client tests."""
import asyncio
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from slotclient.api_client import ApiClient
from slotclient.logic.board import replay_cascades
from slotclient.logic.models import CascadeBoard, CascadeStep, Cluster, NewSymbol
from slotclient.logic.timeline import VirtualClock
from slotclient.protocol import CascadeSpinResponse, LineSpinResponse
from slotclient.storage import ClientStorage
from slotclient.telemetry import TelemetryService


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests that run against the fake HTTP backend"
    )


class MockRedis:
    """Mock Redis client for storage tests."""

    def __init__(self):
        self._store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        self._store[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, key: str) -> int:
        self.ttls.pop(key, None)
        if key in self._store:
            del self._store[key]
            return 1
        return 0

    async def close(self) -> None:
        pass

    def clear(self) -> None:
        self._store.clear()
        self.ttls.clear()


class RecordingTelemetrySink:
    """Telemetry sink that keeps every event in memory."""

    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        self.events.append((event_name, data))

    def get_events(self, event_name: str) -> list[dict[str, Any]]:
        return [data for name, data in self.events if name == event_name]


class _Scripted:
    """Queue of canned results; an Exception in the queue is raised instead."""

    def __init__(self):
        self.gate: asyncio.Event | None = None

    async def _next(self, queue: list) -> Any:
        if self.gate is not None:
            await self.gate.wait()
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class ScriptedLineAPI(_Scripted):
    """Stand-in for LineGameAPI."""

    def __init__(self, responses=None, bonus_responses=None):
        super().__init__()
        self.responses: list = list(responses or [])
        self.bonus_responses: list = list(bonus_responses or [])
        self.spin_calls: list[float] = []
        self.bonus_calls: list[float] = []

    async def spin(self, bet: float) -> LineSpinResponse:
        self.spin_calls.append(bet)
        return await self._next(self.responses)

    async def buy_bonus(self, cost: float) -> LineSpinResponse:
        self.bonus_calls.append(cost)
        return await self._next(self.bonus_responses)


class ScriptedCascadeAPI(_Scripted):
    """Stand-in for CascadeGameAPI."""

    def __init__(self, responses=None, bonus_results=None):
        super().__init__()
        self.responses: list = list(responses or [])
        self.bonus_results: list = list(bonus_results or [])
        self.spin_calls: list[float] = []
        self.bonus_calls: list[float] = []

    async def spin(self, bet: float) -> CascadeSpinResponse:
        self.spin_calls.append(bet)
        return await self._next(self.responses)

    async def buy_bonus(self, amount: float) -> None:
        self.bonus_calls.append(amount)
        return await self._next(self.bonus_results)


class FakePayAPI:
    """Stand-in for PayAPI backed by a single number."""

    def __init__(self, balance: float = 0.0):
        self.balance = balance
        self.deposits: list[float] = []
        self.fail_with: Exception | None = None

    async def get_balance(self) -> float:
        if self.fail_with is not None:
            raise self.fail_with
        return self.balance

    async def deposit(self, amount: float) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.deposits.append(amount)
        self.balance += amount


WIRE_LINE_BOARD = [
    ["S1", "S2", "S3"],
    ["S4", "S5", "S6"],
    ["S7", "S8", "W"],
    ["S1", "S2", "S3"],
    ["S4", "S5", "S6"],
]


def make_line_response(**overrides: Any) -> LineSpinResponse:
    """Build a /line/spin response with sensible defaults."""
    data: dict[str, Any] = {
        "board": [list(reel) for reel in WIRE_LINE_BOARD],
        "line_wins": [],
        "scatter_count": 0,
        "scatter_payout": 0,
        "awarded_free_spins": 0,
        "total_payout": 0,
        "balance": 1000,
        "free_spin_count": 0,
        "in_free_spin": False,
    }
    data.update(overrides)
    return LineSpinResponse.model_validate(data)


def make_cascade_round() -> tuple[CascadeBoard, list[CascadeStep], CascadeBoard]:
    """
    A physically consistent two-step cascade.

    Clusters sit in the bottom rows, new symbols drop into the top rows.
    """
    initial = [[(row * 2 + col) % 7 for col in range(7)] for row in range(7)]
    first_cells = [(5, 0), (6, 0), (5, 1), (6, 1), (6, 2)]
    second_cells = [(4, 4), (5, 4), (6, 4), (6, 5), (6, 6)]
    for row, col in first_cells:
        initial[row][col] = 3
    for row, col in second_cells:
        initial[row][col] = 5

    steps = [
        CascadeStep(
            index=0,
            clusters=[Cluster(symbol=3, cells=first_cells, count=5, payout=4.0, multiplier=2)],
            new_symbols=[
                NewSymbol(row=0, col=0, symbol=1),
                NewSymbol(row=1, col=0, symbol=2),
                NewSymbol(row=0, col=1, symbol=7),
                NewSymbol(row=1, col=1, symbol=4),
                NewSymbol(row=0, col=2, symbol=6),
            ],
        ),
        CascadeStep(
            index=1,
            clusters=[Cluster(symbol=5, cells=second_cells, count=5, payout=6.0, multiplier=4)],
            new_symbols=[
                NewSymbol(row=0, col=4, symbol=0),
                NewSymbol(row=1, col=4, symbol=1),
                NewSymbol(row=2, col=4, symbol=2),
                NewSymbol(row=0, col=5, symbol=3),
                NewSymbol(row=0, col=6, symbol=7),
            ],
        ),
    ]
    final = replay_cascades(initial, steps)
    return initial, steps, final


def steps_to_wire(steps: list[CascadeStep]) -> list[dict[str, Any]]:
    return [
        {
            "cascade_index": step.index,
            "clusters": [
                {
                    "symbol": cluster.symbol,
                    "cells": [{"row": row, "col": col} for row, col in cluster.cells],
                    "count": cluster.count,
                    "payout": cluster.payout,
                    "multiplier": cluster.multiplier,
                }
                for cluster in step.clusters
            ],
            "new_symbols": [
                {"position": {"row": item.row, "col": item.col}, "symbol": item.symbol}
                for item in step.new_symbols
            ],
        }
        for step in steps
    ]


def make_cascade_response(
    initial: CascadeBoard | None,
    steps: list[CascadeStep],
    final: CascadeBoard,
    **overrides: Any,
) -> CascadeSpinResponse:
    """Build a /cascade/spin response; initial=None omits initial_board."""
    data: dict[str, Any] = {
        "board": [list(row) for row in final],
        "cascades": steps_to_wire(steps),
        "total_payout": sum(step.payout for step in steps),
        "balance": 9990,
        "scatter_count": 0,
        "awarded_free_spins": 0,
        "free_spins_left": 0,
        "in_free_spin": False,
    }
    if initial is not None:
        data["initial_board"] = [list(row) for row in initial]
    data.update(overrides)
    return CascadeSpinResponse.model_validate(data)


async def drive(clock: VirtualClock, coro, seconds: float) -> Any:
    """Run a session transition while moving virtual time forward."""
    task = asyncio.create_task(coro)
    await clock.advance(seconds)
    return await task


@dataclass
class BackendState:
    """Mutable state of the fake game backend."""

    valid_token: str = "fresh-token"
    password: str = "secret"
    balance: float = 1000.0
    refresh_ok: bool = True
    logout_fails: bool = False
    refreshes: int = 0
    line_response: dict[str, Any] | None = None
    cascade_response: dict[str, Any] | None = None
    bodies: list[tuple[str, Any]] = field(default_factory=list)


def build_backend(state: BackendState) -> FastAPI:
    """A FastAPI app speaking the game backend's JSON contract."""
    app = FastAPI()

    def unauthorized() -> JSONResponse:
        return JSONResponse({"error": "Token expired"}, status_code=401)

    def authorized(request: Request) -> bool:
        return request.headers.get("authorization") == f"Bearer {state.valid_token}"

    @app.post("/auth/login")
    async def login(request: Request):
        body = await request.json()
        if body.get("password") != state.password:
            return JSONResponse({"error": "Invalid credentials"}, status_code=401)
        return {"access_token": state.valid_token}

    @app.post("/auth/register")
    async def register(request: Request):
        body = await request.json()
        state.bodies.append(("/auth/register", body))
        return {"access_token": state.valid_token}

    @app.post("/auth/refresh")
    async def refresh():
        state.refreshes += 1
        if not state.refresh_ok:
            return JSONResponse({"error": "Refresh token expired"}, status_code=401)
        return {"access_token": state.valid_token}

    @app.post("/auth/logout")
    async def logout():
        if state.logout_fails:
            return JSONResponse({"error": "Service unavailable"}, status_code=503)
        return Response(status_code=204)

    @app.post("/line/spin")
    async def line_spin(request: Request):
        if not authorized(request):
            return unauthorized()
        state.bodies.append(("/line/spin", await request.json()))
        return state.line_response or make_line_response().model_dump()

    @app.post("/line/buy-bonus")
    async def line_buy_bonus(request: Request):
        if not authorized(request):
            return unauthorized()
        state.bodies.append(("/line/buy-bonus", await request.json()))
        return state.line_response or make_line_response(free_spin_count=10).model_dump()

    @app.post("/cascade/spin")
    async def cascade_spin(request: Request):
        if not authorized(request):
            return unauthorized()
        state.bodies.append(("/cascade/spin", await request.json()))
        return state.cascade_response

    @app.post("/cascade/buy-bonus")
    async def cascade_buy_bonus(request: Request):
        if not authorized(request):
            return unauthorized()
        state.bodies.append(("/cascade/buy-bonus", await request.json()))
        return Response(status_code=200)

    @app.get("/pay/balance")
    async def balance(request: Request):
        if not authorized(request):
            return unauthorized()
        return {"balance": state.balance}

    @app.post("/pay/deposit")
    async def deposit(request: Request):
        if not authorized(request):
            return unauthorized()
        body = await request.json()
        state.balance += body["amount"]
        return Response(status_code=204)

    @app.get("/broken")
    async def broken():
        return Response(content="<html>oops</html>", media_type="text/html")

    @app.get("/boom")
    async def boom():
        return JSONResponse({"error": "Internal failure"}, status_code=500)

    @app.get("/teapot")
    async def teapot():
        return Response(content="", status_code=418)

    return app


@pytest.fixture
def mock_redis() -> MockRedis:
    """Create a fresh mock Redis for each test."""
    return MockRedis()


@pytest.fixture
def recording_sink() -> RecordingTelemetrySink:
    return RecordingTelemetrySink()


@pytest.fixture
def telemetry(recording_sink: RecordingTelemetrySink) -> TelemetryService:
    return TelemetryService(sink=recording_sink)


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def storage(mock_redis: MockRedis) -> ClientStorage:
    """ClientStorage wired to the mock Redis."""
    storage = ClientStorage(namespace="test")
    storage._client = mock_redis
    return storage


@pytest.fixture
def backend_state() -> BackendState:
    return BackendState()


@pytest_asyncio.fixture
async def api_client(backend_state: BackendState, storage: ClientStorage):
    """ApiClient talking to the fake backend in-process."""
    client = ApiClient(
        base_url="http://testserver",
        transport=httpx.ASGITransport(app=build_backend(backend_state)),
        storage=storage,
    )
    yield client
    await client.close()
