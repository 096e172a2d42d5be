"""Bingo card generation.

A card is five columns of five numbers. Each column draws from its own
30-wide range (B 1-30, I 31-60, N 61-90, G 91-120, O 121-150). The N column
only draws four numbers; its middle cell holds the FREE_SPACE sentinel,
which lies outside the drawable range and counts as permanently marked.
"""

import random

from pydantic import BaseModel, ConfigDict

from bingo.logic.enums import Letter
from bingo.logic.settings import CARD_SIZE, CENTER_INDEX, FREE_SPACE, LETTER_RANGES


class BingoCard(BaseModel):
    """Immutable 5x5 card, stored row-major."""

    model_config = ConfigDict(frozen=True)

    rows: tuple[tuple[int, ...], ...]

    def column(self, index: int) -> tuple[int, ...]:
        return tuple(row[index] for row in self.rows)

    @property
    def cells(self) -> frozenset[int]:
        return frozenset(value for row in self.rows for value in row)

    def to_grid(self) -> list[list[int]]:
        """Return the card as nested lists for wire payloads."""
        return [list(row) for row in self.rows]


def unique_randoms(low: int, high: int, count: int, rng: random.Random) -> list[int]:
    """Draw `count` distinct integers from [low, high], returned ascending.

    Rejection-samples into a growing set until enough distinct values exist.
    """
    values: set[int] = set()
    while len(values) < count:
        values.add(rng.randint(low, high))
    return sorted(values)


def generate_card(rng: random.Random | None = None) -> BingoCard:
    """Generate a new card. Two cards are not required to differ."""
    rng = rng or random.Random()  # noqa: S311
    columns: list[list[int]] = []
    for index, letter in enumerate(Letter):
        low, high = LETTER_RANGES[letter]
        if index == CENTER_INDEX:
            column = unique_randoms(low, high, CARD_SIZE - 1, rng)
            column.insert(CENTER_INDEX, FREE_SPACE)
        else:
            column = unique_randoms(low, high, CARD_SIZE, rng)
        columns.append(column)

    rows = tuple(tuple(column[r] for column in columns) for r in range(CARD_SIZE))
    return BingoCard(rows=rows)
