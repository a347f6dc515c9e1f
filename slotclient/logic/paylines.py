"""Static payline table of the 5x3 line game."""
from slotclient.logic.models import LINE_REELS, LINE_ROWS, Cell


# Line id -> row index per reel (0 = top row)
PAYLINES: dict[int, tuple[int, ...]] = {
    1: (1, 1, 1, 1, 1),
    2: (0, 0, 0, 0, 0),
    3: (2, 2, 2, 2, 2),
    4: (0, 1, 2, 1, 0),
    5: (2, 1, 0, 1, 2),
    6: (0, 0, 1, 2, 2),
    7: (2, 2, 1, 0, 0),
    8: (1, 0, 0, 0, 1),
    9: (1, 2, 2, 2, 1),
    10: (0, 1, 1, 1, 0),
    11: (2, 1, 1, 1, 2),
    12: (1, 0, 1, 2, 1),
    13: (1, 2, 1, 0, 1),
    14: (0, 1, 0, 1, 0),
    15: (2, 1, 2, 1, 2),
    16: (1, 1, 0, 1, 1),
    17: (1, 1, 2, 1, 1),
    18: (0, 2, 0, 2, 0),
    19: (2, 0, 2, 0, 2),
    20: (0, 2, 2, 2, 0),
}


def line_positions(line_id: int, count: int) -> list[Cell] | None:
    """
    Positions (reel, row) of the first `count` reels of a payline.

    Returns None for an unknown line id. Out-of-range cells are skipped.
    """
    pattern = PAYLINES.get(line_id)
    if pattern is None:
        return None

    positions: list[Cell] = []
    for reel in range(min(max(count, 0), len(pattern), LINE_REELS)):
        row = pattern[reel]
        if 0 <= row < LINE_ROWS:
            positions.append((reel, row))
    return positions
