"""Offline/demo board generation. No paytable: offline spins pay nothing."""
from slotclient.config import settings
from slotclient.logic.models import (
    CASCADE_SCATTER,
    CASCADE_SIZE,
    LINE_REELS,
    LINE_ROWS,
    ORDINARY_SYMBOLS,
    CascadeBoard,
    LineBoard,
    Symbol,
)
from slotclient.logic.rng import ProductionRNG, RNGBase


# Ordinary cascade symbols 0..6
_CASCADE_ORDINARY = tuple(range(CASCADE_SCATTER))


class OfflineBoardGenerator:
    """
    Draws demo boards cell by cell.

    Each cell is a scatter with probability `scatter_chance`, otherwise a
    uniformly drawn ordinary symbol.
    """

    def __init__(self, rng: RNGBase | None = None, scatter_chance: float | None = None):
        self.rng = rng or ProductionRNG()
        self.scatter_chance = (
            settings.offline_scatter_chance if scatter_chance is None else scatter_chance
        )

    def line_board(self) -> LineBoard:
        """Generate a 5x3 board, [reel][row]."""
        board: LineBoard = []
        for _ in range(LINE_REELS):
            reel = []
            for _ in range(LINE_ROWS):
                if self.rng.chance(self.scatter_chance):
                    reel.append(Symbol.SCATTER)
                else:
                    reel.append(self.rng.choice(ORDINARY_SYMBOLS))
            board.append(reel)
        return board

    def cascade_board(self) -> CascadeBoard:
        """Generate a 7x7 board, [row][col]."""
        board: CascadeBoard = []
        for _ in range(CASCADE_SIZE):
            row = []
            for _ in range(CASCADE_SIZE):
                if self.rng.chance(self.scatter_chance):
                    row.append(CASCADE_SCATTER)
                else:
                    row.append(self.rng.choice(_CASCADE_ORDINARY))
            board.append(row)
        return board
