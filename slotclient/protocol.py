"""Wire models for the game backend endpoints."""
from pydantic import BaseModel, Field


# === Request Models ===


class BetRequest(BaseModel):
    """POST /line/spin, /line/buy-bonus and /cascade/spin request body."""

    bet: float


class AmountRequest(BaseModel):
    """POST /cascade/buy-bonus and /pay/deposit request body."""

    amount: float


class LoginRequest(BaseModel):
    """POST /auth/login request body."""

    login: str
    password: str


class RegisterRequest(BaseModel):
    """POST /auth/register request body."""

    name: str
    login: str
    password: str


# === Line game ===


class LineWin(BaseModel):
    """A payline win as sent by the server (no positions)."""

    line: int  # payline id 1..20
    symbol: str
    count: int
    payout: float


class LineSpinResponse(BaseModel):
    """POST /line/spin and /line/buy-bonus response."""

    board: list[list[str]]  # [reel][row], 5x3
    line_wins: list[LineWin] = Field(default_factory=list)
    scatter_count: int = 0
    scatter_payout: float = 0.0
    awarded_free_spins: int = 0
    total_payout: float = 0.0
    balance: float
    free_spin_count: int = 0
    # Not sent on the buy-bonus path
    in_free_spin: bool | None = None


# === Cascade game ===


class CellPosition(BaseModel):
    """Board cell on the 7x7 cascade grid."""

    row: int
    col: int


class ClusterWire(BaseModel):
    """A removed cluster within a cascade step."""

    symbol: int
    cells: list[CellPosition]
    count: int
    payout: float
    multiplier: float


class NewSymbolWire(BaseModel):
    """A symbol dropped in after gravity."""

    position: CellPosition
    symbol: int


class CascadeStepWire(BaseModel):
    """One cascade step as sent by the server."""

    cascade_index: int
    clusters: list[ClusterWire] = Field(default_factory=list)
    new_symbols: list[NewSymbolWire] = Field(default_factory=list)


class CascadeSpinResponse(BaseModel):
    """POST /cascade/spin response."""

    initial_board: list[list[int]] | None = None
    board: list[list[int]]  # [row][col], 7x7; -1 empty, 0..6 ordinary, 7 scatter
    cascades: list[CascadeStepWire] = Field(default_factory=list)
    total_payout: float = 0.0
    balance: float
    scatter_count: int = 0
    awarded_free_spins: int = 0
    free_spins_left: int = 0
    in_free_spin: bool = False


# === Pay / auth ===


class BalanceResponse(BaseModel):
    """GET /pay/balance response."""

    balance: float


class AuthResponse(BaseModel):
    """POST /auth/login, /auth/register and /auth/refresh response."""

    access_token: str


class ErrorResponse(BaseModel):
    """Error body returned by the backend on non-2xx responses."""

    error: str
