"""Spin result translator: wire responses to the internal board and win model."""
import logging

from slotclient.config import settings
from slotclient.errors import ErrorCode, GameError
from slotclient.logic.board import (
    copy_board,
    is_cascade_board,
    is_fully_populated,
    is_line_board,
    reconstruct_initial_board,
    scatter_positions,
)
from slotclient.logic.models import (
    CASCADE_SCATTER,
    CASCADE_SIZE,
    EMPTY,
    SCATTER_LINE_INDEX,
    CascadeBoard,
    CascadeSpinOutcome,
    CascadeStep,
    Cluster,
    LineBoard,
    LineSpinOutcome,
    NewSymbol,
    Symbol,
    WinningLine,
)
from slotclient.logic.paylines import line_positions
from slotclient.protocol import CascadeSpinResponse, CascadeStepWire, LineSpinResponse


logger = logging.getLogger(__name__)


# Wire code -> internal symbol
WIRE_SYMBOLS: dict[str, Symbol] = {
    "S1": Symbol.SYM1,
    "S2": Symbol.SYM2,
    "S3": Symbol.SYM3,
    "S4": Symbol.SYM4,
    "S5": Symbol.SYM5,
    "S6": Symbol.SYM6,
    "S7": Symbol.SYM7,
    "S8": Symbol.SYM8,
    "B": Symbol.SCATTER,
    "W": Symbol.WILD,
}


def _strict(strict: bool | None) -> bool:
    return settings.strict_decode if strict is None else strict


def decode_symbol(code: str, strict: bool | None = None) -> Symbol:
    """
    Map a wire symbol code to the internal enum.

    Unknown codes raise UNKNOWN_SYMBOL in strict mode; otherwise they fall
    back to the lowest-value symbol and are logged.
    """
    symbol = WIRE_SYMBOLS.get(code)
    if symbol is not None:
        return symbol
    if _strict(strict):
        raise GameError(ErrorCode.UNKNOWN_SYMBOL, f"Unknown symbol code {code!r}")
    logger.warning("Unknown symbol code %r, falling back to %s", code, Symbol.SYM1.value)
    return Symbol.SYM1


def decode_line_board(board: list[list[str]], strict: bool | None = None) -> LineBoard:
    if not is_line_board(board):
        raise GameError(ErrorCode.MALFORMED_PAYLOAD, "Line board must be 5 reels x 3 rows")
    return [[decode_symbol(code, strict) for code in reel] for reel in board]


def translate_line_spin(
    response: LineSpinResponse, strict: bool | None = None
) -> LineSpinOutcome:
    """
    Translate a /line/spin or /line/buy-bonus response.

    Payline positions are rebuilt from the payline table; a scatter payout
    becomes an extra WinningLine with line_index -1.
    """
    board = decode_line_board(response.board, strict)

    winning_lines: list[WinningLine] = []
    for line_win in response.line_wins:
        positions = line_positions(line_win.line, line_win.count)
        if positions is None:
            if _strict(strict):
                raise GameError(
                    ErrorCode.MALFORMED_PAYLOAD, f"Unknown payline id {line_win.line}"
                )
            logger.warning("Unknown payline id %d, win shown without positions", line_win.line)
            positions = []
        winning_lines.append(
            WinningLine(
                line_index=line_win.line,
                symbol=decode_symbol(line_win.symbol, strict),
                count=line_win.count,
                win_amount=line_win.payout,
                positions=positions,
            )
        )

    if response.scatter_count >= 3 and response.scatter_payout > 0:
        winning_lines.append(
            WinningLine(
                line_index=SCATTER_LINE_INDEX,
                symbol=Symbol.SCATTER,
                count=response.scatter_count,
                win_amount=response.scatter_payout,
                positions=scatter_positions(board),
            )
        )

    in_free_spin = response.in_free_spin
    if in_free_spin is None:
        in_free_spin = response.free_spin_count > 0

    return LineSpinOutcome(
        board=board,
        winning_lines=winning_lines,
        total_payout=response.total_payout,
        balance=response.balance,
        scatter_count=response.scatter_count,
        scatter_payout=response.scatter_payout,
        awarded_free_spins=response.awarded_free_spins,
        free_spins_left=response.free_spin_count,
        in_free_spin=in_free_spin,
    )


def _decode_cell(value: int, allow_empty: bool, strict: bool | None) -> int:
    if value == EMPTY:
        if allow_empty:
            return value
        raise GameError(ErrorCode.MALFORMED_PAYLOAD, "Empty cell where a symbol is required")
    if 0 <= value <= CASCADE_SCATTER:
        return value
    if _strict(strict):
        raise GameError(ErrorCode.UNKNOWN_SYMBOL, f"Unknown cascade symbol {value}")
    logger.warning("Unknown cascade symbol %d, falling back to 0", value)
    return 0


def decode_cascade_board(
    board: list[list[int]], allow_empty: bool, strict: bool | None = None
) -> CascadeBoard:
    if not is_cascade_board(board):
        raise GameError(ErrorCode.MALFORMED_PAYLOAD, "Cascade board must be 7x7")
    return [[_decode_cell(value, allow_empty, strict) for value in row] for row in board]


def _check_cell(row: int, col: int) -> tuple[int, int]:
    if not (0 <= row < CASCADE_SIZE and 0 <= col < CASCADE_SIZE):
        raise GameError(ErrorCode.MALFORMED_PAYLOAD, f"Cascade cell ({row}, {col}) is off the board")
    return row, col


def translate_cascade_step(step: CascadeStepWire, strict: bool | None = None) -> CascadeStep:
    clusters = [
        Cluster(
            symbol=_decode_cell(cluster.symbol, False, strict),
            cells=[_check_cell(cell.row, cell.col) for cell in cluster.cells],
            count=cluster.count,
            payout=cluster.payout,
            multiplier=cluster.multiplier,
        )
        for cluster in step.clusters
    ]
    new_symbols = []
    for new_symbol in step.new_symbols:
        row, col = _check_cell(new_symbol.position.row, new_symbol.position.col)
        new_symbols.append(
            NewSymbol(row=row, col=col, symbol=_decode_cell(new_symbol.symbol, True, strict))
        )
    return CascadeStep(index=step.cascade_index, clusters=clusters, new_symbols=new_symbols)


def translate_cascade_spin(
    response: CascadeSpinResponse, strict: bool | None = None
) -> CascadeSpinOutcome:
    """
    Translate a /cascade/spin response.

    Steps are ordered by cascade_index. When the server omits the initial
    board it is reconstructed from the final board and the steps.
    """
    final_board = decode_cascade_board(response.board, allow_empty=False, strict=strict)

    steps = sorted(
        (translate_cascade_step(step, strict) for step in response.cascades),
        key=lambda step: step.index,
    )
    indices = [step.index for step in steps]
    if len(set(indices)) != len(indices):
        raise GameError(ErrorCode.MALFORMED_PAYLOAD, f"Duplicate cascade indices {indices}")

    reconstructed = False
    if response.initial_board:
        initial_board = decode_cascade_board(response.initial_board, allow_empty=False, strict=strict)
    elif steps:
        logger.warning("initial_board not provided, reconstructing from %d cascade step(s)", len(steps))
        initial_board = reconstruct_initial_board(final_board, steps)
        reconstructed = True
        if not is_fully_populated(initial_board):
            logger.warning("Reconstructed initial board has empty cells")
    else:
        initial_board = copy_board(final_board)

    return CascadeSpinOutcome(
        initial_board=initial_board,
        final_board=final_board,
        steps=steps,
        initial_board_reconstructed=reconstructed,
        total_payout=response.total_payout,
        balance=response.balance,
        scatter_count=response.scatter_count,
        awarded_free_spins=response.awarded_free_spins,
        free_spins_left=response.free_spins_left,
        in_free_spin=response.in_free_spin,
    )
