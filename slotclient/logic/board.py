"""Board helpers: defaults, cascade gravity, replay and reverse reconstruction."""
import logging
from collections.abc import Iterable

from slotclient.logic.models import (
    CASCADE_SIZE,
    EMPTY,
    LINE_REELS,
    LINE_ROWS,
    CascadeBoard,
    CascadeStep,
    Cell,
    LineBoard,
    Symbol,
)


logger = logging.getLogger(__name__)


# Board shown before the first line spin, [reel][row]
_DEFAULT_LINE_REELS: tuple[tuple[Symbol, ...], ...] = (
    (Symbol.SYM1, Symbol.SYM5, Symbol.SYM3),
    (Symbol.SYM7, Symbol.SYM2, Symbol.SYM6),
    (Symbol.SYM4, Symbol.SYM8, Symbol.SYM1),
    (Symbol.SYM6, Symbol.SYM3, Symbol.SYM7),
    (Symbol.SYM2, Symbol.SYM4, Symbol.SYM8),
)


def default_line_board() -> LineBoard:
    return [list(reel) for reel in _DEFAULT_LINE_REELS]


def default_cascade_board() -> CascadeBoard:
    """Fully populated placeholder board shown before the first cascade spin."""
    return [[(row + col) % 7 for col in range(CASCADE_SIZE)] for row in range(CASCADE_SIZE)]


def empty_cascade_board() -> CascadeBoard:
    return [[EMPTY] * CASCADE_SIZE for _ in range(CASCADE_SIZE)]


def copy_board(board: list[list]) -> list[list]:
    return [list(line) for line in board]


def has_shape(board: list[list], outer: int, inner: int) -> bool:
    return len(board) == outer and all(len(line) == inner for line in board)


def is_line_board(board: LineBoard) -> bool:
    return has_shape(board, LINE_REELS, LINE_ROWS)


def is_cascade_board(board: CascadeBoard) -> bool:
    return has_shape(board, CASCADE_SIZE, CASCADE_SIZE)


def is_fully_populated(board: CascadeBoard) -> bool:
    return all(cell != EMPTY for row in board for cell in row)


def scatter_positions(board: LineBoard) -> list[Cell]:
    """All (reel, row) cells holding the scatter symbol, reel-major."""
    return [
        (reel_idx, row_idx)
        for reel_idx, reel in enumerate(board)
        for row_idx, symbol in enumerate(reel)
        if symbol == Symbol.SCATTER
    ]


def diff_boards(actual: CascadeBoard, expected: CascadeBoard) -> list[Cell]:
    """Cells (row, col) where the two boards differ."""
    mismatches: list[Cell] = []
    for row in range(CASCADE_SIZE):
        for col in range(CASCADE_SIZE):
            if actual[row][col] != expected[row][col]:
                mismatches.append((row, col))
    return mismatches


def apply_gravity(board: CascadeBoard) -> CascadeBoard:
    """
    Drop every non-empty cell to the bottom of its column.

    Relative order within a column is preserved; vacated top cells are EMPTY.
    """
    result = empty_cascade_board()
    for col in range(CASCADE_SIZE):
        target = CASCADE_SIZE - 1
        for row in range(CASCADE_SIZE - 1, -1, -1):
            if board[row][col] != EMPTY:
                result[target][col] = board[row][col]
                target -= 1
    return result


def apply_cascade_step(board: CascadeBoard, step: CascadeStep) -> CascadeBoard:
    """
    Apply one cascade step forward.

    1. Every cluster cell becomes EMPTY.
    2. Gravity packs each column to the bottom.
    3. New symbols fill their cells.
    """
    exploded = copy_board(board)
    for cluster in step.clusters:
        for row, col in cluster.cells:
            exploded[row][col] = EMPTY

    settled = apply_gravity(exploded)
    for new_symbol in step.new_symbols:
        settled[new_symbol.row][new_symbol.col] = new_symbol.symbol
    return settled


def replay_cascades(initial: CascadeBoard, steps: Iterable[CascadeStep]) -> CascadeBoard:
    """Apply all steps in order; the input board is not modified."""
    board = copy_board(initial)
    for step in steps:
        board = apply_cascade_step(board, step)
    return board


def reconstruct_initial_board(final: CascadeBoard, steps: list[CascadeStep]) -> CascadeBoard:
    """
    Derive the pre-cascade board from the final board and the steps.

    Steps are undone last to first:
    1. Clear the cells that received new symbols (undo the drop).
    2. Undo gravity: each column's survivors, taken bottom to top, go back
       into the cells that were not part of this step's clusters.
    3. Restore the cluster cells to their symbols (undo the explosion).
    """
    board = copy_board(final)
    for step in reversed(steps):
        for new_symbol in step.new_symbols:
            if new_symbol.symbol != EMPTY:
                board[new_symbol.row][new_symbol.col] = EMPTY

        exploded: dict[Cell, int] = {}
        for cluster in step.clusters:
            for cell in cluster.cells:
                exploded[cell] = cluster.symbol

        restored = empty_cascade_board()
        for col in range(CASCADE_SIZE):
            survivors = [
                board[row][col]
                for row in range(CASCADE_SIZE - 1, -1, -1)
                if board[row][col] != EMPTY
            ]
            for row in range(CASCADE_SIZE - 1, -1, -1):
                if (row, col) in exploded:
                    continue
                if survivors:
                    restored[row][col] = survivors.pop(0)
            if survivors:
                logger.warning(
                    "Cascade step %d: %d symbol(s) in column %d do not fit back",
                    step.index,
                    len(survivors),
                    col,
                )

        for (row, col), symbol in exploded.items():
            restored[row][col] = symbol
        board = restored
    return board
