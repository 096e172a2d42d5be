"""Number selection for the next call, with optional letter bias."""

import random
from collections.abc import Set as AbstractSet

from bingo.logic.enums import Letter
from bingo.logic.settings import LETTER_RANGES, MAX_NUMBER, MIN_NUMBER


def full_pool() -> set[int]:
    return set(range(MIN_NUMBER, MAX_NUMBER + 1))


def letter_for_number(number: int) -> Letter:
    """Map a drawable number to its column letter."""
    for letter, (low, high) in LETTER_RANGES.items():
        if low <= number <= high:
            return letter
    raise ValueError(f"number {number} is outside the drawable range")


def draw_next(
    available: AbstractSet[int],
    preferred: Letter | None = None,
    rng: random.Random | None = None,
) -> int | None:
    """Pick the next number from `available` without removing it.

    With a preferred letter, only that letter's range is considered; if the
    range has nothing left the full pool is used instead. Returns None only
    when the pool is empty. Candidates are sorted so a seeded rng is
    reproducible regardless of set iteration order.
    """
    if not available:
        return None
    rng = rng or random.Random()  # noqa: S311

    candidates: list[int] = []
    if preferred is not None:
        low, high = LETTER_RANGES[preferred]
        candidates = sorted(n for n in available if low <= n <= high)
    if not candidates:
        candidates = sorted(available)
    return rng.choice(candidates)
