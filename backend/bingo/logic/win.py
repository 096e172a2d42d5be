"""Win-distance evaluation shared by bingo verification and the leaderboard."""

from collections.abc import Collection

from bingo.logic.card import BingoCard
from bingo.logic.settings import CARD_SIZE


def winning_lines(card: BingoCard) -> list[tuple[int, ...]]:
    """Return all 12 lines: 5 rows, 5 columns, then both diagonals."""
    lines = [tuple(row) for row in card.rows]
    lines.extend(card.column(c) for c in range(CARD_SIZE))
    lines.append(tuple(card.rows[i][i] for i in range(CARD_SIZE)))
    lines.append(tuple(card.rows[i][CARD_SIZE - 1 - i] for i in range(CARD_SIZE)))
    return lines


def distance_to_win(card: BingoCard, marked: Collection[int]) -> int:
    """Count the unmarked cells on the line closest to completion.

    0 means at least one line is fully marked. The FREE_SPACE sentinel is only
    treated as marked if it is present in `marked`; callers keep it seeded.
    """
    return min(sum(1 for value in line if value not in marked) for line in winning_lines(card))


def is_bingo(card: BingoCard, marked: Collection[int]) -> bool:
    return distance_to_win(card, marked) == 0
