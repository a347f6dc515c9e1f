"""Board, symbol, economy and outcome models for both games."""
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# Line game grid, addressed [reel][row]
LINE_REELS = 5
LINE_ROWS = 3

# Cascade game grid, addressed [row][col]
CASCADE_SIZE = 7

# Cascade cell values (wire encoding is used internally as well)
EMPTY = -1
CASCADE_SCATTER = 7

SCATTER_LINE_INDEX = -1


class Symbol(str, Enum):
    """Line game symbols, ordinary ones from lowest to highest value."""
    SYM1 = "symbol_1"
    SYM2 = "symbol_2"
    SYM3 = "symbol_3"
    SYM4 = "symbol_4"
    SYM5 = "symbol_5"
    SYM6 = "symbol_6"
    SYM7 = "symbol_7"
    SYM8 = "symbol_8"
    SCATTER = "bonus"
    WILD = "wild"


ORDINARY_SYMBOLS: tuple[Symbol, ...] = (
    Symbol.SYM1,
    Symbol.SYM2,
    Symbol.SYM3,
    Symbol.SYM4,
    Symbol.SYM5,
    Symbol.SYM6,
    Symbol.SYM7,
    Symbol.SYM8,
)

LineBoard = list[list[Symbol]]
CascadeBoard = list[list[int]]
Cell = tuple[int, int]


class SessionPhase(str, Enum):
    """Phase of a game session. Exactly one at a time."""
    IDLE = "IDLE"
    SPINNING = "SPINNING"
    RESOLVING = "RESOLVING"


class WinningLine(BaseModel):
    """
    A payout to present on the line board.

    line_index == -1 marks the scatter payout: it is never drawn as a path
    and is skipped when cycling lines, but it counts towards the total.
    """
    line_index: int
    symbol: Symbol
    count: int
    win_amount: float
    positions: list[Cell] = Field(default_factory=list)  # (reel, row)

    @property
    def is_scatter(self) -> bool:
        return self.line_index == SCATTER_LINE_INDEX


class Cluster(BaseModel):
    """Cells removed together in one cascade step."""
    symbol: int
    cells: list[Cell]  # (row, col)
    count: int
    payout: float = 0.0
    multiplier: float = 1.0


class NewSymbol(BaseModel):
    """A cell filled after gravity resolves a step."""
    row: int
    col: int
    symbol: int


class CascadeStep(BaseModel):
    """One cascade: cluster removal, gravity, then new symbols."""
    index: int
    clusters: list[Cluster] = Field(default_factory=list)
    new_symbols: list[NewSymbol] = Field(default_factory=list)

    @property
    def payout(self) -> float:
        return sum(cluster.payout for cluster in self.clusters)


class EconomyState(BaseModel):
    """Balance, bet and free-spin bookkeeping owned by a session."""
    balance: float
    bet: float
    free_spins_left: int = 0
    is_bonus_game: bool = False
    total_win: float = 0.0


class LineSpinOutcome(BaseModel):
    """A line spin result translated into the internal model."""
    board: LineBoard
    winning_lines: list[WinningLine] = Field(default_factory=list)
    total_payout: float = 0.0
    balance: float
    scatter_count: int = 0
    scatter_payout: float = 0.0
    awarded_free_spins: int = 0
    free_spins_left: int = 0
    in_free_spin: bool = False

    @property
    def payline_wins(self) -> list[WinningLine]:
        return [line for line in self.winning_lines if not line.is_scatter]


class CascadeSpinOutcome(BaseModel):
    """A cascade spin result translated into the internal model."""
    initial_board: CascadeBoard
    final_board: CascadeBoard
    steps: list[CascadeStep] = Field(default_factory=list)
    initial_board_reconstructed: bool = False
    total_payout: float = 0.0
    balance: float
    scatter_count: int = 0
    awarded_free_spins: int = 0
    free_spins_left: int = 0
    in_free_spin: bool = False


class LineSessionSnapshot(BaseModel):
    """Read-only view of a line session for the presentation layer."""
    model_config = ConfigDict(frozen=True)

    phase: SessionPhase
    board: LineBoard
    economy: EconomyState
    winning_lines: list[WinningLine]
    last_win: float
    scatter_count: int
    awarded_free_spins: int
    in_free_spin: bool
    online: bool
    turbo: bool


class CascadeSessionSnapshot(BaseModel):
    """Read-only view of a cascade session for the presentation layer."""
    model_config = ConfigDict(frozen=True)

    phase: SessionPhase
    board: CascadeBoard
    economy: EconomyState
    last_win: float
    scatter_count: int
    awarded_free_spins: int
    last_shown_free_spins: int
    in_free_spin: bool
    current_cascade_index: int
    current_step: CascadeStep | None
    cascade_count: int
    online: bool
    turbo: bool
